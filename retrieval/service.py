"""
Retriever - ingestion and query pipelines over one vector index

Ingestion:
1. Chunk the text with TextChunker.
2. Embed every chunk through a bounded worker pool, retrying transient
   embedding failures with backoff.
3. Skip chunks that still fail and report them as warnings (sorted by
   chunk id) instead of aborting the whole document.
4. Upsert the embedded records in batches.

Query:
1. Embed the question.
2. Ask the index for the top_k nearest records.
3. Return ranked hits (retrieve) or just their texts (answer) for the
   answer composer. Failures abort that query only.

Usage:
    from retrieval import Retriever, RetrievalConfig

    retriever = Retriever.from_config(RetrievalConfig())
    report = retriever.ingest(text, document_id="state_of_ai")
    contexts = retriever.answer("What are the top AI trends?", top_k=5)
"""

import logging
import time
from pathlib import Path
from typing import Optional

from chunking.chunker import TextChunker
from chunking.models import Chunk, ChunkingConfig
from common.concurrency import BoundedWorkerPool
from common.exceptions import (
    EmbeddingUnavailable,
    IndexUnavailable,
    InvalidConfiguration,
    is_retryable,
)
from common.retry import retry_call

from .config import RetrievalConfig
from .embedder import Embedder, build_embedder
from .models import (
    TEXT_KEY,
    ChunkFailure,
    IndexedRecord,
    IngestReport,
    RetrievalHit,
)
from .vector_index import VectorIndex, build_vector_index

logger = logging.getLogger(__name__)

# Per-chunk errors that skip the chunk instead of aborting ingestion
_CHUNK_ERRORS = (EmbeddingUnavailable, ValueError)


def make_record_id(chunk_id: int, document_id: Optional[str] = None) -> str:
    """Stable record ID for a chunk: "<n>" or "<document_id>_chunk_<nnnn>"."""
    if document_id:
        return f"{document_id}_chunk_{chunk_id:04d}"
    return str(chunk_id)


class Retriever:
    """
    Orchestrates chunking, embedding and the vector index.

    Holds no per-call state; ingest() and answer() may run concurrently
    against the same index.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        config: Optional[RetrievalConfig] = None,
    ):
        self.config = config or RetrievalConfig()
        self.embedder = embedder
        self.index = index
        self.retry_policy = self.config.retry_policy()

    @classmethod
    def from_config(cls, config: RetrievalConfig) -> "Retriever":
        return cls(
            embedder=build_embedder(config),
            index=build_vector_index(config),
            config=config,
        )

    def close(self) -> None:
        """Release resources held by the vector index."""
        self.index.close()

    def __enter__(self) -> "Retriever":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def ingest(
        self,
        text: str,
        config: Optional[ChunkingConfig] = None,
        document_id: Optional[str] = None,
    ) -> IngestReport:
        """
        Chunk, embed and index a document.

        Args:
            text: Raw document text.
            config: Chunking parameters (defaults to the retriever's).
            document_id: Optional prefix for record IDs.

        Returns:
            IngestReport with counts, timings and skipped-chunk warnings.

        Raises:
            InvalidConfiguration: If the chunking parameters are invalid.
            DimensionMismatch: If embeddings don't match the index dimension.
            IndexUnavailable: If the index still fails after retries.
        """
        total_start = time.time()
        chunking = TextChunker(config or self.config.chunking).chunk(text, document_id)
        chunks = chunking.chunks

        embed_start = time.time()
        with BoundedWorkerPool(max_workers=self.config.max_workers, name="embed") as pool:
            outcomes = pool.run_all(self._embed_chunk, chunks)
        embed_time = time.time() - embed_start

        records: list[IndexedRecord] = []
        warnings: list[ChunkFailure] = []
        for outcome in outcomes:
            if outcome.ok:
                records.append(self._make_record(outcome.item, outcome.result, document_id))
            elif isinstance(outcome.error, _CHUNK_ERRORS):
                warnings.append(self._make_failure(outcome.item, outcome.error))
            else:
                raise outcome.error

        warnings.sort(key=lambda failure: failure.chunk_id)
        for failure in warnings:
            logger.warning(
                f"Skipped chunk {failure.chunk_id} after {failure.attempts} attempt(s): "
                f"{failure.error_type}: {failure.message}"
            )

        self._upsert_batches(records)

        report = IngestReport(
            document_id=document_id,
            chunks_total=len(chunks),
            chunks_indexed=len(records),
            truncated=chunking.truncated,
            warnings=warnings,
            embedding_time_seconds=round(embed_time, 2),
            total_time_seconds=round(time.time() - total_start, 2),
        )
        logger.info(
            f"Ingested {report.chunks_indexed}/{report.chunks_total} chunks "
            f"for {document_id or '<unnamed>'} in {report.total_time_seconds}s"
        )
        return report

    def ingest_file(
        self,
        path: str,
        config: Optional[ChunkingConfig] = None,
        document_id: Optional[str] = None,
    ) -> IngestReport:
        """
        Read a plain-text file and ingest it.

        The document ID defaults to the file name without extension.
        """
        normalized = path.replace("\\", "/")
        text = Path(normalized).read_text(encoding="utf-8")
        return self.ingest(text, config=config, document_id=document_id or Path(normalized).stem)

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def retrieve(self, question: str, top_k: Optional[int] = None) -> list[RetrievalHit]:
        """
        Find the chunks most similar to a question.

        Returns:
            Hits in descending score order, at most top_k.

        Raises:
            InvalidConfiguration: For an empty question or top_k <= 0.
            EmbeddingUnavailable / IndexUnavailable: After retries.
            DimensionMismatch: If the query embedding doesn't fit the index.
        """
        if not question or not question.strip():
            raise InvalidConfiguration("question must not be empty")
        if top_k is None:
            top_k = self.config.default_top_k

        vector = retry_call(
            lambda: self.embedder.embed(question),
            self.retry_policy,
            retry_on=(EmbeddingUnavailable,),
            operation_name="embed question",
        )
        result = retry_call(
            lambda: self.index.query(vector, top_k),
            self.retry_policy,
            retry_on=(IndexUnavailable,),
            operation_name="index query",
        )
        return [
            RetrievalHit(
                id=match.record.id,
                score=match.score,
                text=match.record.text,
                metadata=match.record.metadata,
            )
            for match in result.matches
        ]

    def answer(self, question: str, top_k: Optional[int] = None) -> list[str]:
        """Return the texts of the top_k chunks for a question, best first."""
        return [hit.text for hit in self.retrieve(question, top_k)]

    # -------------------------------------------------------------------------
    # Internal methods
    # -------------------------------------------------------------------------

    def _embed_chunk(self, chunk: Chunk) -> list[float]:
        return retry_call(
            lambda: self.embedder.embed(chunk.text),
            self.retry_policy,
            retry_on=(EmbeddingUnavailable,),
            operation_name=f"embed chunk {chunk.chunk_id}",
        )

    def _make_record(
        self,
        chunk: Chunk,
        vector: list[float],
        document_id: Optional[str],
    ) -> IndexedRecord:
        metadata = {
            TEXT_KEY: chunk.text,
            "chunk_index": chunk.chunk_id,
            "start_offset": chunk.start_offset,
            "end_offset": chunk.end_offset,
        }
        if document_id:
            metadata["document_id"] = document_id
        return IndexedRecord(
            id=make_record_id(chunk.chunk_id, document_id),
            vector=vector,
            metadata=metadata,
        )

    def _make_failure(self, chunk: Chunk, error: Exception) -> ChunkFailure:
        attempts = self.retry_policy.max_attempts if is_retryable(error) else 1
        return ChunkFailure(
            chunk_id=chunk.chunk_id,
            attempts=attempts,
            error_type=type(error).__name__,
            message=str(error),
        )

    def _upsert_batches(self, records: list[IndexedRecord]) -> None:
        batch_size = max(1, self.config.upsert_batch_size)
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            retry_call(
                lambda batch=batch: self.index.upsert(batch),
                self.retry_policy,
                retry_on=(IndexUnavailable,),
                operation_name=f"upsert records {start}-{start + len(batch) - 1}",
            )
