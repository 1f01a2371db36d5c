from typing import Any, Optional

from pydantic import BaseModel, Field

from retrieval.models import RetrievalHit


class AnswerResult(BaseModel):
    """Answer to one question together with the context it was built from."""

    question: str
    answer: str
    contexts: list[str] = Field(default_factory=list, description="Context texts sent to the model, best first")
    hits: list[RetrievalHit] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class GenerateRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: Optional[int] = Field(None, ge=1, le=50)
    max_context_tokens: Optional[int] = Field(None, ge=1)


class GenerateResponse(BaseModel):
    answer: str
    contexts: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
