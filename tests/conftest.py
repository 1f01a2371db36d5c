"""
Pytest fixtures for the retrieval and generation tests.
"""

import re
import threading
from typing import Sequence

import pytest

from common.exceptions import EmbeddingUnavailable
from retrieval import InMemoryVectorIndex, RetrievalConfig, Retriever
from chunking import ChunkingConfig

DIMENSION = 64

_WORD = re.compile(r"\w+")


class VocabularyEmbedder:
    """
    Deterministic bag-of-words embedder.

    Each new word gets the next free dimension (wrapping after
    DIMENSION words), so texts sharing words end up with similar vectors.
    """

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls = 0
        self._vocabulary: dict[str, int] = {}
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        if not text:
            raise ValueError("Cannot embed empty text (input 0)")
        vector = [0.0] * self.dimension
        with self._lock:
            self.calls += 1
            for word in _WORD.findall(text.lower()):
                slot = self._vocabulary.setdefault(word, len(self._vocabulary))
                vector[slot % self.dimension] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class FlakyEmbedder(VocabularyEmbedder):
    """
    Fails with EmbeddingUnavailable for texts containing a marker word,
    and for every other text on its first ``fail_first`` attempts.
    """

    def __init__(self, broken_marker: str = "BROKEN", fail_first: int = 0):
        super().__init__()
        self.broken_marker = broken_marker
        self.fail_first = fail_first
        self.attempts: dict[str, int] = {}

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.attempts[text] = self.attempts.get(text, 0) + 1
            attempt = self.attempts[text]
        if self.broken_marker in text:
            raise EmbeddingUnavailable("model crashed", service="fake")
        if attempt <= self.fail_first:
            raise EmbeddingUnavailable("rate limited", service="fake")
        return super().embed(text)


@pytest.fixture
def embedder():
    return VocabularyEmbedder()


@pytest.fixture
def retrieval_config():
    """Small windows, no backoff delay."""
    return RetrievalConfig(
        max_attempts=3,
        retry_delay=0.0,
        max_workers=4,
        upsert_batch_size=2,
        chunking=ChunkingConfig(size=5, overlap=2),
    )


@pytest.fixture
def retriever(embedder, retrieval_config):
    return Retriever(embedder, InMemoryVectorIndex(), retrieval_config)


@pytest.fixture
def sample_text():
    return "the quick brown fox jumps over the lazy dog and runs fast"
