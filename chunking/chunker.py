"""
Text Chunker - Sliding-window chunking for the retrieval pipeline

Takes the raw text produced by a text-extraction step and splits it into
overlapping windows of a fixed number of tokens.

Algorithm:
1. Tokenize the text into whitespace-delimited words (WORD) or single
   characters (CHAR), remembering each token's character span.
2. Emit a window of `size` tokens, then advance the start by
   `size - overlap` tokens.
3. Stop once a window reaches the last token (the final window may be
   shorter than `size`) or once `max_chunks` windows have been emitted.
4. Reassemble each window: WORD tokens joined by single spaces, CHAR
   tokens concatenated.

Usage:
    from chunking import TextChunker, ChunkingConfig, ChunkUnit

    chunker = TextChunker(ChunkingConfig(size=500, overlap=100))
    result = chunker.chunk(text, document_id="state_of_ai")
    for chunk in result.chunks:
        print(chunk.chunk_id, chunk.text[:40])
"""

import logging
import re
from typing import Iterator, Optional

from .models import (
    Chunk,
    ChunkingConfig,
    ChunkingResult,
    ChunkingStats,
    ChunkUnit,
)

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"\S+")


class TextChunker:
    """
    Splits raw text into overlapping, fixed-size token windows.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        self.config.validate_window()

    def chunk(self, text: str, document_id: Optional[str] = None) -> ChunkingResult:
        """
        Chunk a text into retrieval-ready windows.

        Args:
            text: Raw document text.
            document_id: Optional identifier carried into the result.

        Returns:
            ChunkingResult with all chunks and statistics.
        """
        tokens, spans = tokenize(text, self.config.unit)
        separator = " " if self.config.unit == ChunkUnit.WORD else ""

        chunks: list[Chunk] = []
        truncated = False
        for start, end in self._windows(len(tokens)):
            if self.config.max_chunks is not None and len(chunks) >= self.config.max_chunks:
                truncated = True
                break
            chunks.append(Chunk(
                chunk_id=len(chunks),
                text=separator.join(tokens[start:end]),
                start_offset=start,
                end_offset=end,
                char_start=spans[start][0],
                char_end=spans[end - 1][1],
            ))

        if truncated:
            logger.warning(
                f"Document {document_id or '<unnamed>'} reached the cap of "
                f"{self.config.max_chunks} chunks; stopped at token "
                f"{chunks[-1].end_offset} of {len(tokens)}"
            )

        return ChunkingResult(
            document_id=document_id,
            config=self.config,
            chunks=chunks,
            token_count=len(tokens),
            truncated=truncated,
            stats=self._compute_stats(chunks),
        )

    # -------------------------------------------------------------------------
    # Internal methods
    # -------------------------------------------------------------------------

    def _windows(self, token_count: int) -> Iterator[tuple[int, int]]:
        """Yield (start, end) token offsets of each window, in order."""
        start = 0
        while start < token_count:
            end = min(start + self.config.size, token_count)
            yield start, end
            if end >= token_count:
                break
            start += self.config.stride

    def _compute_stats(self, chunks: list[Chunk]) -> ChunkingStats:
        """Compute statistics about the chunking result."""
        if not chunks:
            return ChunkingStats()

        token_counts = [c.token_count for c in chunks]
        return ChunkingStats(
            total_chunks=len(chunks),
            total_tokens=sum(token_counts),
            avg_chunk_tokens=sum(token_counts) / len(token_counts),
            min_chunk_tokens=min(token_counts),
            max_chunk_tokens=max(token_counts),
        )


def tokenize(text: str, unit: ChunkUnit) -> tuple[list[str], list[tuple[int, int]]]:
    """
    Split text into tokens of the given unit.

    Returns:
        Tuple of (tokens, spans) where spans[i] is the (start, end)
        character range of tokens[i] in ``text``.
    """
    if not text:
        return [], []
    if unit == ChunkUnit.WORD:
        matches = list(_WORD_PATTERN.finditer(text))
        return [m.group() for m in matches], [m.span() for m in matches]
    return list(text), [(i, i + 1) for i in range(len(text))]


def chunk_text(
    text: str,
    size: int,
    overlap: int,
    unit: ChunkUnit = ChunkUnit.WORD,
    max_chunks: Optional[int] = None,
) -> list[Chunk]:
    """
    Split text into overlapping windows.

    Args:
        text: Raw text to split.
        size: Tokens per window (> 0).
        overlap: Tokens shared by consecutive windows (< size).
        unit: ChunkUnit.WORD or ChunkUnit.CHAR.
        max_chunks: Optional cap on the number of windows.

    Returns:
        Chunks in source order.

    Raises:
        InvalidConfiguration: If the window would not advance.
    """
    config = ChunkingConfig(size=size, overlap=overlap, unit=unit, max_chunks=max_chunks)
    return TextChunker(config).chunk(text).chunks
