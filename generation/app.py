from typing import Optional

from fastapi import FastAPI

from retrieval.app import create_app as create_retrieval_app
from retrieval.app import to_http_error
from retrieval.config import RetrievalConfig
from retrieval.service import Retriever

from .config import GenerationConfig
from .models import GenerateRequest, GenerateResponse
from .service import GenerationService


def create_app(
    retriever: Optional[Retriever] = None,
    service: Optional[GenerationService] = None,
    config: Optional[GenerationConfig] = None,
    retrieval_config: Optional[RetrievalConfig] = None,
) -> FastAPI:
    """Retrieval API plus POST /generate."""
    owns_retriever = service is None and retriever is None
    if service is None:
        retriever = retriever or Retriever.from_config(retrieval_config or RetrievalConfig.from_env())
        service = GenerationService(retriever, config=config or GenerationConfig.from_env())

    app = create_retrieval_app(retriever=service.retriever, close_on_shutdown=owns_retriever)
    app.title = "RAG Service"
    app.description = "Chunking, vector retrieval and answer generation API."
    app.state.generation = service

    @app.post("/generate", response_model=GenerateResponse)
    def generate(request: GenerateRequest) -> GenerateResponse:
        try:
            result = service.ask(
                request.query,
                top_k=request.top_k,
                max_context_tokens=request.max_context_tokens,
            )
        except Exception as exc:
            raise to_http_error(exc) from exc
        return GenerateResponse(
            answer=result.answer,
            contexts=result.contexts,
            metadata=result.metadata,
        )

    return app
