"""Unit tests for TextChunker fixed-size chunking."""

from __future__ import annotations

import pytest

from src.services.ingestion.chunker import TextChunker


class TestTextChunker:
    def test_empty_text_yields_no_chunks(self) -> None:
        assert TextChunker().chunk("") == []

    def test_short_text_is_single_chunk(self) -> None:
        assert TextChunker().chunk("hello world") == ["hello world"]

    def test_exact_multiple_has_no_partial_chunk(self) -> None:
        chunks = TextChunker(chunk_size=1000).chunk("x" * 2000)
        assert [len(c) for c in chunks] == [1000, 1000]

    def test_remainder_goes_to_last_chunk(self) -> None:
        chunks = TextChunker(chunk_size=1000).chunk("x" * 2500)
        assert [len(c) for c in chunks] == [1000, 1000, 500]

    def test_concatenation_reproduces_text(self) -> None:
        text = "The quick brown fox jumps over the lazy dog. " * 97
        chunks = TextChunker(chunk_size=128).chunk(text)
        assert "".join(chunks) == text

    def test_boundaries_ignore_words(self) -> None:
        chunks = TextChunker().chunk("abcdef", size=4)
        assert chunks == ["abcd", "ef"]

    def test_size_override_does_not_change_default(self) -> None:
        chunker = TextChunker(chunk_size=3)
        assert chunker.chunk("abcdef", size=2) == ["ab", "cd", "ef"]
        assert chunker.chunk("abcdef") == ["abc", "def"]
        assert chunker.chunk_size == 3

    def test_deterministic(self) -> None:
        chunker = TextChunker(chunk_size=7)
        text = "same input, same output"
        assert chunker.chunk(text) == chunker.chunk(text)

    def test_offsets_match_chunk_starts(self) -> None:
        chunker = TextChunker(chunk_size=4)
        text = "abcdefghij"
        assert chunker.offsets(text) == [0, 4, 8]
        for offset, chunk in zip(chunker.offsets(text), chunker.chunk(text), strict=True):
            assert text[offset : offset + len(chunk)] == chunk

    @pytest.mark.parametrize("size", [0, -1])
    def test_non_positive_size_rejected(self, size: int) -> None:
        with pytest.raises(ValueError):
            TextChunker().chunk("text", size=size)
        with pytest.raises(ValueError):
            TextChunker().offsets("text", size=size)

    def test_non_positive_default_rejected(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=0)
