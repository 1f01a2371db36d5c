"""
Vector Index - "store vector with metadata" and "find k nearest vectors"

Two interchangeable implementations of the VectorIndex protocol:

- InMemoryVectorIndex: exact cosine-similarity scan over an in-process
  dict. O(n*d) per query, deterministic tie-break by insertion order.
  Suited to small corpora and tests.
- ChromaVectorIndex: a ChromaDB collection in cosine space, either a
  remote server (HttpClient) or a local PersistentClient. Backend
  failures and timeouts surface as IndexUnavailable.

Shared contract:
- upsert() replaces records with the same id. The first upserted record
  establishes the index dimension; a batch containing a vector of any
  other length raises DimensionMismatch and nothing from it is applied.
- query() returns at most top_k matches in descending score order and
  raises DimensionMismatch for a query vector of the wrong length.
- Querying an index without records returns an empty QueryResult, or
  raises EmptyIndex when the index was built with raise_on_empty=True.

Usage:
    index = InMemoryVectorIndex()
    index.upsert([IndexedRecord(id="0", vector=[1.0, 0.0], metadata={"text": "a"})])
    result = index.query([0.9, 0.1], top_k=1)
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional, Protocol, Sequence, TypeVar

import chromadb
import numpy as np

from common.concurrency import call_with_timeout
from common.exceptions import (
    DegenerateVector,
    DimensionMismatch,
    EmptyIndex,
    IndexUnavailable,
    InvalidConfiguration,
)

from .config import RetrievalConfig
from .models import TEXT_KEY, IndexedRecord, QueryMatch, QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VectorIndex(Protocol):
    """Capability interface shared by all vector index backends."""

    @property
    def dimension(self) -> Optional[int]:
        ...

    def upsert(self, records: Sequence[IndexedRecord]) -> None:
        ...

    def query(self, vector: Sequence[float], top_k: int) -> QueryResult:
        ...

    def count(self) -> int:
        ...

    def delete(self, ids: Sequence[str]) -> int:
        ...

    def close(self) -> None:
        ...


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Defined as dot(a, b) / (||a|| * ||b||) with Euclidean norms.

    Returns:
        Similarity in [-1, 1].

    Raises:
        DimensionMismatch: If the vectors have different lengths.
        DegenerateVector: If either vector has zero norm.
    """
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(expected=a.size, actual=b.size)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        raise DegenerateVector()

    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def _check_top_k(top_k: int) -> None:
    if top_k <= 0:
        raise InvalidConfiguration(f"top_k must be positive, got {top_k}")


def _check_dimensions(records: Sequence[IndexedRecord], dimension: int) -> None:
    for record in records:
        if record.dimension != dimension:
            raise DimensionMismatch(
                expected=dimension,
                actual=record.dimension,
                record_id=record.id,
            )


class InMemoryVectorIndex:
    """
    Exact cosine-similarity index held in process memory.

    A single lock guards the record map for readers and writers alike.
    """

    def __init__(self, raise_on_empty: bool = False):
        self.raise_on_empty = raise_on_empty
        self._lock = threading.Lock()
        # dict keeps insertion order; re-assigning an existing id keeps its slot
        self._records: dict[str, IndexedRecord] = {}
        self._dimension: Optional[int] = None
        self._matrix: Optional[np.ndarray] = None

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def upsert(self, records: Sequence[IndexedRecord]) -> None:
        records = list(records)
        if not records:
            return

        with self._lock:
            dimension = self._dimension or records[0].dimension
            _check_dimensions(records, dimension)
            for record in records:
                self._records[record.id] = record
            self._dimension = dimension
            self._matrix = None

        logger.debug(f"Upserted {len(records)} records ({len(self._records)} total)")

    def query(self, vector: Sequence[float], top_k: int) -> QueryResult:
        _check_top_k(top_k)

        with self._lock:
            if not self._records:
                return _empty_result(self.raise_on_empty)
            if len(vector) != self._dimension:
                raise DimensionMismatch(expected=self._dimension, actual=len(vector))

            query_vector = np.asarray(vector, dtype=np.float64)
            query_norm = np.linalg.norm(query_vector)
            if query_norm == 0:
                raise DegenerateVector()

            records = list(self._records.values())
            matrix = self._get_matrix()

        norms = np.linalg.norm(matrix, axis=1)
        degenerate = np.flatnonzero(norms == 0)
        if degenerate.size:
            logger.warning(
                f"Skipping {degenerate.size} zero-norm record(s): "
                f"{[records[i].id for i in degenerate]}"
            )

        with np.errstate(divide="ignore", invalid="ignore"):
            scores = (matrix @ query_vector) / (norms * query_norm)
        scores = np.clip(scores, -1.0, 1.0)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")
        matches: list[QueryMatch] = []
        for i in order:
            if norms[i] == 0:
                continue
            matches.append(QueryMatch(record=records[i], score=float(scores[i])))
            if len(matches) == top_k:
                break
        return QueryResult(matches=matches)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def delete(self, ids: Sequence[str]) -> int:
        with self._lock:
            removed = 0
            for record_id in ids:
                if self._records.pop(record_id, None) is not None:
                    removed += 1
            if removed:
                self._matrix = None
            return removed

    def get(self, record_id: str) -> Optional[IndexedRecord]:
        with self._lock:
            return self._records.get(record_id)

    def close(self) -> None:
        pass

    def _get_matrix(self) -> np.ndarray:
        # Caller holds the lock
        if self._matrix is None:
            self._matrix = np.array(
                [record.vector for record in self._records.values()],
                dtype=np.float64,
            )
        return self._matrix


class ChromaVectorIndex:
    """
    Vector index backed by a ChromaDB collection (cosine space).

    Each upsert() is sent as a single backend request, so a batch is
    applied completely or not at all. Every backend call runs under
    ``timeout`` seconds.
    """

    def __init__(
        self,
        collection_name: str,
        chroma_client: Optional[chromadb.ClientAPI] = None,
        persist_directory: Optional[str] = None,
        timeout: float = 30.0,
        raise_on_empty: bool = False,
        client_factory: Optional[Callable[[], chromadb.ClientAPI]] = None,
    ):
        """
        Initialize the index.

        Args:
            collection_name: ChromaDB collection to use (created if missing).
            chroma_client: Pre-created client (HttpClient, EphemeralClient, ...).
                           If not provided, client_factory or a
                           PersistentClient builds one.
            persist_directory: Storage directory for the PersistentClient.
            timeout: Seconds to wait for each backend call.
            raise_on_empty: Raise EmptyIndex instead of returning no matches.
            client_factory: Builds the client under ``timeout`` when no
                            chroma_client is given (used for HttpClient).
        """
        self.collection_name = collection_name
        self.timeout = timeout
        self.raise_on_empty = raise_on_empty
        self._dimension: Optional[int] = None

        if chroma_client is None and client_factory is None:
            if not persist_directory:
                raise InvalidConfiguration("persist_directory is required without a chroma_client")
            client_factory = partial(chromadb.PersistentClient, path=persist_directory)

        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="chroma")
        try:
            if chroma_client is None:
                chroma_client = self._call(client_factory, "open client")
            self._client = chroma_client
            self._collection = self._call(
                lambda: self._client.get_or_create_collection(
                    name=collection_name,
                    metadata={"hnsw:space": "cosine"},
                ),
                "get_or_create_collection",
            )
        except IndexUnavailable:
            self.close()
            raise

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        collection_name: str,
        timeout: float = 30.0,
        raise_on_empty: bool = False,
    ) -> "ChromaVectorIndex":
        """
        Connect to a remote Chroma server.

        The HttpClient handshake runs under ``timeout`` like every other
        backend call; an unreachable or silent server raises IndexUnavailable.
        """
        logger.info(f"Connecting to Chroma at {host}:{port}")
        return cls(
            collection_name=collection_name,
            client_factory=partial(chromadb.HttpClient, host=host, port=port),
            timeout=timeout,
            raise_on_empty=raise_on_empty,
        )

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def upsert(self, records: Sequence[IndexedRecord]) -> None:
        records = list(records)
        if not records:
            return

        dimension = self._established_dimension() or records[0].dimension
        _check_dimensions(records, dimension)

        self._call(
            lambda: self._collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                documents=[r.text for r in records],
                metadatas=[_flatten_metadata({TEXT_KEY: r.text, **r.metadata}) for r in records],
            ),
            "upsert",
        )
        self._dimension = dimension
        logger.debug(f"Upserted {len(records)} records into '{self.collection_name}'")

    def query(self, vector: Sequence[float], top_k: int) -> QueryResult:
        _check_top_k(top_k)

        total = self.count()
        if total == 0:
            return _empty_result(self.raise_on_empty)

        dimension = self._established_dimension()
        if dimension is not None and len(vector) != dimension:
            raise DimensionMismatch(expected=dimension, actual=len(vector))

        raw = self._call(
            lambda: self._collection.query(
                query_embeddings=[list(vector)],
                n_results=min(top_k, total),
                include=["documents", "metadatas", "distances", "embeddings"],
            ),
            "query",
        )

        matches: list[QueryMatch] = []
        if not raw["ids"] or not raw["ids"][0]:
            return QueryResult(matches=matches)

        for i, record_id in enumerate(raw["ids"][0]):
            metadata = dict(raw["metadatas"][0][i] or {})
            metadata.setdefault(TEXT_KEY, raw["documents"][0][i] or "")
            record = IndexedRecord(
                id=record_id,
                vector=[float(x) for x in raw["embeddings"][0][i]],
                metadata=metadata,
            )
            distance = raw["distances"][0][i]
            matches.append(QueryMatch(record=record, score=float(1 - distance)))
        return QueryResult(matches=matches)

    def count(self) -> int:
        return self._call(self._collection.count, "count")

    def delete(self, ids: Sequence[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        existing = self._call(
            lambda: self._collection.get(ids=ids, include=[]),
            "get",
        )
        found = existing["ids"]
        if found:
            self._call(lambda: self._collection.delete(ids=found), "delete")
        return len(found)

    def close(self) -> None:
        """Release the worker threads; abandoned calls are not waited for."""
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "ChromaVectorIndex":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _established_dimension(self) -> Optional[int]:
        """Dimension of stored records, looked up once from the backend."""
        if self._dimension is None:
            sample = self._call(
                lambda: self._collection.get(limit=1, include=["embeddings"]),
                "get",
            )
            embeddings = sample.get("embeddings")
            if embeddings is not None and len(embeddings) > 0:
                self._dimension = len(embeddings[0])
        return self._dimension

    def _call(self, fn: Callable[[], T], operation: str) -> T:
        try:
            return call_with_timeout(
                self._executor,
                fn,
                self.timeout,
                on_timeout=lambda: IndexUnavailable(
                    f"Chroma {operation} exceeded {self.timeout}s",
                    service="chroma",
                    timed_out=True,
                ),
            )
        except IndexUnavailable:
            raise
        except Exception as e:
            raise IndexUnavailable(
                f"Chroma {operation} failed",
                service="chroma",
                original_error=e,
            ) from e


def _empty_result(raise_on_empty: bool) -> QueryResult:
    if raise_on_empty:
        raise EmptyIndex()
    logger.info("Query against an empty index; returning no matches")
    return QueryResult()


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten record metadata for ChromaDB storage.

    ChromaDB only supports flat scalar values: lists become
    comma-separated strings, dicts become JSON, None values are dropped.
    """
    flat: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, list):
            flat[key] = ",".join(str(item) for item in value)
        elif isinstance(value, dict):
            flat[key] = json.dumps(value, ensure_ascii=False)
        else:
            flat[key] = value
    return flat


def build_vector_index(config: RetrievalConfig) -> VectorIndex:
    """Create the vector index selected by ``config.index_backend``."""
    if config.index_backend == "memory":
        return InMemoryVectorIndex(raise_on_empty=config.raise_on_empty)
    if config.index_backend == "chroma":
        if config.chroma_host:
            return ChromaVectorIndex.connect(
                host=config.chroma_host,
                port=config.chroma_port,
                collection_name=config.collection_name,
                timeout=config.index_timeout,
                raise_on_empty=config.raise_on_empty,
            )
        return ChromaVectorIndex(
            collection_name=config.collection_name,
            persist_directory=config.persist_directory,
            timeout=config.index_timeout,
            raise_on_empty=config.raise_on_empty,
        )
    raise InvalidConfiguration(f"Unsupported index backend: {config.index_backend}")
