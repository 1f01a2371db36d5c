"""
Data Models for the Chunking Pipeline

Defines:
1. ChunkUnit - Tokenization unit (whitespace words or characters)
2. ChunkingConfig - Window size, overlap, unit and safety cap
3. Chunk - A single immutable text window with its source offsets
4. ChunkingResult - Complete chunking output with statistics

Design Principles:
- Pydantic v2 for validation and serialization
- Offsets are token offsets (end exclusive) in the configured unit;
  char_start/char_end locate the window in the source string
- Save/load pattern for inspecting chunking output offline

Usage:
    config = ChunkingConfig(size=500, overlap=100, unit=ChunkUnit.WORD)
    result = TextChunker(config).chunk(text, document_id="report")
    result.save("chunks.json")
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.exceptions import InvalidConfiguration


class ChunkUnit(str, Enum):
    """Unit the chunker counts windows in."""
    WORD = "word"
    CHAR = "char"


class ChunkingConfig(BaseModel):
    """
    Configuration for the chunking pipeline.

    Window bounds are checked by validate_window() rather than field
    constraints so that bad values surface as InvalidConfiguration.
    """
    size: int = Field(
        1000,
        description="Tokens per window",
    )
    overlap: int = Field(
        100,
        description="Tokens shared by consecutive windows (must be < size)",
    )
    unit: ChunkUnit = Field(
        ChunkUnit.WORD,
        description="Tokenization unit: whitespace-delimited words or characters",
    )
    max_chunks: Optional[int] = Field(
        None,
        description="Stop after this many windows (None = unlimited)",
    )

    @property
    def stride(self) -> int:
        return self.size - self.overlap

    def validate_window(self) -> None:
        """Raise InvalidConfiguration unless the window can advance."""
        if self.size <= 0:
            raise InvalidConfiguration(f"size must be positive, got {self.size}")
        if self.overlap < 0:
            raise InvalidConfiguration(f"overlap must not be negative, got {self.overlap}")
        if self.overlap >= self.size:
            raise InvalidConfiguration(
                f"overlap ({self.overlap}) must be less than size ({self.size})"
            )
        if self.max_chunks is not None and self.max_chunks < 1:
            raise InvalidConfiguration(
                f"max_chunks must be at least 1, got {self.max_chunks}"
            )


class Chunk(BaseModel):
    """
    A single text window, ready for embedding.

    Immutable once created.
    """
    model_config = ConfigDict(frozen=True)

    chunk_id: int = Field(
        ...,
        description="Ordinal position of the window (0-indexed)",
        ge=0,
    )
    text: str = Field(
        ...,
        description="Window text, reassembled from its tokens",
    )
    start_offset: int = Field(
        ...,
        description="Index of the first token in the window",
        ge=0,
    )
    end_offset: int = Field(
        ...,
        description="Index one past the last token in the window",
        ge=0,
    )
    char_start: int = Field(
        0,
        description="Character offset of the first token in the source text",
        ge=0,
    )
    char_end: int = Field(
        0,
        description="Character offset one past the last token in the source text",
        ge=0,
    )

    @property
    def token_count(self) -> int:
        return self.end_offset - self.start_offset

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ChunkingStats(BaseModel):
    """Statistics about the chunking process."""
    total_chunks: int = 0
    total_tokens: int = 0
    avg_chunk_tokens: float = 0.0
    min_chunk_tokens: int = 0
    max_chunk_tokens: int = 0


class ChunkingResult(BaseModel):
    """
    Complete result of chunking a document.

    Ready for downstream embedding and vector index ingestion.
    """
    document_id: Optional[str] = Field(
        None,
        description="Document identifier, if the caller supplied one",
    )
    config: ChunkingConfig = Field(
        ...,
        description="Configuration used for chunking",
    )
    chunks: list[Chunk] = Field(
        default_factory=list,
        description="All windows in source order",
    )
    token_count: int = Field(
        0,
        description="Number of tokens in the source text",
    )
    truncated: bool = Field(
        False,
        description="True if max_chunks stopped chunking before the end of the text",
    )
    stats: ChunkingStats = Field(
        default_factory=ChunkingStats,
        description="Chunking statistics",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When chunking was performed",
    )

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def texts(self) -> list[str]:
        return [chunk.text for chunk in self.chunks]

    def get_chunk(self, chunk_id: int) -> Optional[Chunk]:
        """Find a chunk by its ordinal ID."""
        if 0 <= chunk_id < len(self.chunks):
            return self.chunks[chunk_id]
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    def save(self, path: str) -> None:
        """Save chunking result to a JSON file."""
        Path(path).write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: str) -> "ChunkingResult":
        """Load chunking result from a JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)
