"""Tests for the overlapping text chunker."""

import pytest

from live_kb_sync.pipelines.chunker import chunk_text


class TestChunkText:
    """Test fixed-window chunking."""

    def test_windows_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(3000))

        chunks = chunk_text(text, chunk_size=1200, overlap=150)

        assert [len(c) for c in chunks] == [1200, 1200, 900]
        assert chunks[0][-150:] == chunks[1][:150]
        assert chunks[1][-150:] == chunks[2][:150]
        assert chunks[-1].endswith(text[-10:])

    def test_short_text_single_chunk(self):
        assert chunk_text("Krátký text", chunk_size=1200, overlap=150) == ["Krátký text"]

    def test_exact_size_single_chunk(self):
        assert chunk_text("x" * 1200, chunk_size=1200, overlap=150) == ["x" * 1200]

    def test_blank_input(self):
        assert chunk_text("  \n\n ") == []
        assert chunk_text("") == []

    @pytest.mark.parametrize("size,overlap", [(0, 0), (100, 100), (100, -1)])
    def test_invalid_arguments(self, size, overlap):
        with pytest.raises(ValueError):
            chunk_text("text", chunk_size=size, overlap=overlap)
