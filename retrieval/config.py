from dataclasses import dataclass, field
import os
from typing import Optional

from chunking.models import ChunkingConfig, ChunkUnit
from common.retry import RetryPolicy


@dataclass
class RetrievalConfig:
    index_backend: str = "memory"
    collection_name: str = "retrieval_chunks"
    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    persist_directory: str = "data/retrieval/chroma"
    embedding_provider: str = "ollama"
    embedding_model: str = "nomic-embed-text"
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: Optional[str] = None
    embed_timeout: float = 30.0
    index_timeout: float = 30.0
    max_workers: int = 5
    max_attempts: int = 3
    retry_delay: float = 0.5
    upsert_batch_size: int = 100
    default_top_k: int = 5
    raise_on_empty: bool = False
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, initial_delay=self.retry_delay)

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        def _int(name: str, default: int) -> int:
            value = os.environ.get(name)
            return int(value) if value else default

        def _float(name: str, default: float) -> float:
            value = os.environ.get(name)
            return float(value) if value else default

        def _bool(name: str, default: bool) -> bool:
            value = os.environ.get(name)
            if not value:
                return default
            return value.strip().lower() in {"1", "true", "yes", "on"}

        max_chunks = os.environ.get("CHUNK_MAX_CHUNKS")
        chunking = ChunkingConfig(
            size=_int("CHUNK_SIZE", ChunkingConfig.model_fields["size"].default),
            overlap=_int("CHUNK_OVERLAP", ChunkingConfig.model_fields["overlap"].default),
            unit=ChunkUnit(os.environ.get("CHUNK_UNIT", ChunkUnit.WORD.value)),
            max_chunks=int(max_chunks) if max_chunks else None,
        )

        return cls(
            index_backend=os.environ.get("RETRIEVAL_INDEX_BACKEND", cls.index_backend),
            collection_name=os.environ.get("RETRIEVAL_COLLECTION", cls.collection_name),
            chroma_host=os.environ.get("CHROMA_HOST") or None,
            chroma_port=_int("CHROMA_PORT", cls.chroma_port),
            persist_directory=os.environ.get("CHROMA_PERSIST_DIRECTORY", cls.persist_directory),
            embedding_provider=os.environ.get("EMBEDDING_PROVIDER", cls.embedding_provider),
            embedding_model=os.environ.get("EMBEDDING_MODEL", cls.embedding_model),
            ollama_base_url=os.environ.get("OLLAMA_BASE_URL", cls.ollama_base_url),
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            embed_timeout=_float("EMBED_TIMEOUT", cls.embed_timeout),
            index_timeout=_float("INDEX_TIMEOUT", cls.index_timeout),
            max_workers=_int("RETRIEVAL_MAX_WORKERS", cls.max_workers),
            max_attempts=_int("RETRIEVAL_MAX_ATTEMPTS", cls.max_attempts),
            retry_delay=_float("RETRIEVAL_RETRY_DELAY", cls.retry_delay),
            upsert_batch_size=_int("RETRIEVAL_UPSERT_BATCH_SIZE", cls.upsert_batch_size),
            default_top_k=_int("RETRIEVAL_TOP_K", cls.default_top_k),
            raise_on_empty=_bool("RETRIEVAL_RAISE_ON_EMPTY", cls.raise_on_empty),
            chunking=chunking,
        )
