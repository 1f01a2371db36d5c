"""
Retrieval component for RAG pipelines.

Embeds document chunks, stores them in a vector index (in-memory or
ChromaDB) and retrieves the chunks closest to a question.
"""

__version__ = "1.0.0"

from .config import RetrievalConfig
from .service import Retriever, make_record_id
from .models import (
    ChunkFailure,
    IndexedRecord,
    IngestReport,
    IngestRequest,
    QueryMatch,
    QueryRequest,
    QueryResult,
    RetrievalHit,
    RetrievalResponse,
)
from .vector_index import (
    ChromaVectorIndex,
    InMemoryVectorIndex,
    VectorIndex,
    build_vector_index,
    cosine_similarity,
)
from .embedder import Embedder, OllamaEmbedder, OpenAIEmbedder, build_embedder

__all__ = [
    "__version__",
    "RetrievalConfig",
    "Retriever",
    "make_record_id",
    "ChunkFailure",
    "IndexedRecord",
    "IngestReport",
    "IngestRequest",
    "QueryMatch",
    "QueryRequest",
    "QueryResult",
    "RetrievalHit",
    "RetrievalResponse",
    "VectorIndex",
    "InMemoryVectorIndex",
    "ChromaVectorIndex",
    "build_vector_index",
    "cosine_similarity",
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "build_embedder",
]
