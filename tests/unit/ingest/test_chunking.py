"""Tests for the boundary-aware text chunker."""

from __future__ import annotations

import pytest

from archivist.db.models import Chunk
from archivist.ingest.chunking import (
    DEFAULT_MAX_CHARS,
    SENTENCE_LOOKAHEAD,
    Chunker,
    chunk_text,
    estimate_chunk_count,
)


def test_default_window():
    assert Chunker().max_chars == DEFAULT_MAX_CHARS == 3000


def test_empty_and_blank_text_yield_nothing():
    assert chunk_text("") == []
    assert chunk_text("   \n\t ") == []


def test_short_text_single_stripped_chunk():
    chunks = chunk_text("  Short text.  ")
    assert len(chunks) == 1
    assert chunks[0].text == "Short text."
    assert chunks[0].char_count == len("Short text.")
    assert chunks[0].index == 0


def test_invalid_window_rejected():
    with pytest.raises(ValueError):
        chunk_text("abc", max_chars=0)
    with pytest.raises(ValueError):
        Chunker(max_chars=0)


def test_cut_moves_forward_to_sentence_end():
    text = "x " * 60 + "End. " + "y " * 100
    chunks = chunk_text(text, max_chars=100)
    assert chunks[0].text.endswith("End.")


def test_cut_falls_back_to_last_space():
    text = "word " * 100
    chunks = chunk_text(text, max_chars=52)
    assert all(c.text.split(" ") == ["word"] * len(c.text.split(" ")) for c in chunks)


def test_hard_cut_without_spaces():
    chunks = chunk_text("a" * 250, max_chars=100)
    assert [c.char_count for c in chunks] == [100, 100, 50]


def test_chunks_preserve_every_word_in_order():
    text = " ".join(f"w{i}." if i % 17 == 0 else f"w{i}" for i in range(2000))
    chunks = chunk_text(text, max_chars=300)
    assert len(chunks) > 1
    rebuilt = " ".join(c.text for c in chunks).split()
    assert rebuilt == text.split()


def test_rechunking_joined_output_keeps_boundaries():
    text = " ".join(
        f"Sentence {i} ends here." if i % 7 == 0 else f"word{i}" for i in range(1500)
    )
    first = chunk_text(text, max_chars=250)

    again = chunk_text(" ".join(c.text for c in first), max_chars=250)

    assert [c.text for c in again] == [c.text for c in first]


def test_chunk_length_bounded_by_window_plus_lookahead():
    text = ("lorem ipsum dolor sit amet " * 400) + "Done. tail"
    for chunk in chunk_text(text, max_chars=500):
        assert 0 < chunk.char_count <= 500 + SENTENCE_LOOKAHEAD


def test_indices_are_sequential():
    chunks = chunk_text("abc def ghi. " * 200, max_chars=120)
    assert [c.index for c in chunks] == list(range(len(chunks)))


def test_chunker_builds_unsaved_chunks():
    chunks = Chunker(max_chars=50).chunk("unit-1", "Hello there. " * 20)
    assert all(isinstance(c, Chunk) for c in chunks)
    assert all(c.unit_id == "unit-1" and c.id is None and c.embedding is None for c in chunks)
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


def test_estimate_chunk_count():
    assert estimate_chunk_count(0) == 0
    assert estimate_chunk_count(10, max_chars=100) == 1
    assert estimate_chunk_count(250, max_chars=100) == 3
