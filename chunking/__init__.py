"""
Chunking Module - Sliding-window text chunking for retrieval

Splits raw document text into overlapping windows of words or characters,
each carrying its ordinal ID and source offsets.

Quick Start:
    from chunking import TextChunker, ChunkingConfig, ChunkUnit

    chunker = TextChunker(ChunkingConfig(size=500, overlap=100, unit=ChunkUnit.WORD))
    result = chunker.chunk(text)
    result.save("chunks.json")
"""

__version__ = "1.0.0"

from .chunker import TextChunker, chunk_text, tokenize
from .models import (
    Chunk,
    ChunkingConfig,
    ChunkingResult,
    ChunkingStats,
    ChunkUnit,
)
from .token_counter import count_tokens, fit_to_budget

__all__ = [
    "__version__",
    "TextChunker",
    "chunk_text",
    "tokenize",
    "Chunk",
    "ChunkingConfig",
    "ChunkingResult",
    "ChunkingStats",
    "ChunkUnit",
    "count_tokens",
    "fit_to_budget",
]
