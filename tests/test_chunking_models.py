"""Tests for chunking.models — Chunk, ChunkingConfig, ChunkingResult."""

import pytest
from pydantic import ValidationError

from chunking import Chunk, ChunkingConfig, ChunkingResult, ChunkUnit, TextChunker


def _make_chunk(chunk_id: int = 0, **overrides) -> Chunk:
    defaults = dict(
        chunk_id=chunk_id,
        text="some window text",
        start_offset=0,
        end_offset=3,
        char_start=0,
        char_end=16,
    )
    defaults.update(overrides)
    return Chunk(**defaults)


class TestChunk:
    def test_token_count(self):
        assert _make_chunk(start_offset=3, end_offset=8).token_count == 5

    def test_frozen(self):
        chunk = _make_chunk()
        with pytest.raises(ValidationError):
            chunk.text = "changed"

    def test_negative_id_rejected(self):
        with pytest.raises(ValidationError):
            _make_chunk(chunk_id=-1)

    def test_to_dict(self):
        data = _make_chunk(chunk_id=2).to_dict()
        assert data["chunk_id"] == 2
        assert data["text"] == "some window text"


class TestChunkingConfig:
    def test_stride(self):
        assert ChunkingConfig(size=10, overlap=3).stride == 7

    def test_unit_from_string(self):
        assert ChunkingConfig(unit="char").unit == ChunkUnit.CHAR

    def test_validate_window_accepts_defaults(self):
        ChunkingConfig().validate_window()


class TestChunkingResult:
    def test_get_chunk(self):
        result = ChunkingResult(config=ChunkingConfig(), chunks=[_make_chunk(0), _make_chunk(1)])
        assert result.get_chunk(1).chunk_id == 1
        assert result.get_chunk(2) is None
        assert result.get_chunk(-1) is None

    def test_texts(self):
        result = ChunkingResult(config=ChunkingConfig(), chunks=[_make_chunk(0, text="a"), _make_chunk(1, text="b")])
        assert result.texts == ["a", "b"]
        assert result.total_chunks == 2

    def test_save_and_load(self, tmp_path, sample_text):
        result = TextChunker(ChunkingConfig(size=5, overlap=2)).chunk(sample_text, document_id="fox")
        path = tmp_path / "chunks.json"
        result.save(str(path))

        loaded = ChunkingResult.load(str(path))
        assert loaded.document_id == "fox"
        assert loaded.texts == result.texts
        assert loaded.config == result.config
        assert loaded.created_at == result.created_at
