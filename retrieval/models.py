from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from chunking.models import ChunkingConfig, ChunkUnit

TEXT_KEY = "text"


class IndexedRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    vector: list[float] = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return len(self.vector)

    @property
    def text(self) -> str:
        return self.metadata.get(TEXT_KEY, "")


class QueryMatch(BaseModel):
    record: IndexedRecord
    score: float


class QueryResult(BaseModel):
    matches: list[QueryMatch] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def ids(self) -> list[str]:
        return [match.record.id for match in self.matches]

    @property
    def texts(self) -> list[str]:
        return [match.record.text for match in self.matches]


class ChunkFailure(BaseModel):
    chunk_id: int
    attempts: int
    error_type: str
    message: str


class IngestReport(BaseModel):
    document_id: Optional[str] = None
    chunks_total: int = 0
    chunks_indexed: int = 0
    truncated: bool = False
    warnings: list[ChunkFailure] = Field(default_factory=list)
    embedding_time_seconds: float = 0.0
    total_time_seconds: float = 0.0

    @property
    def chunks_skipped(self) -> int:
        return len(self.warnings)


class RetrievalHit(BaseModel):
    id: str
    score: float
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    text: str = Field(..., min_length=1)
    document_id: Optional[str] = None
    size: Optional[int] = None
    overlap: Optional[int] = None
    unit: Optional[ChunkUnit] = None
    max_chunks: Optional[int] = None

    def chunking_config(self, defaults: ChunkingConfig) -> ChunkingConfig:
        overrides = self.model_dump(
            include={"size", "overlap", "unit", "max_chunks"},
            exclude_none=True,
        )
        return defaults.model_copy(update=overrides)


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: int = Field(5, ge=1, le=50)


class RetrievalResponse(BaseModel):
    query: str
    results: list[RetrievalHit] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)
