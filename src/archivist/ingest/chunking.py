"""Boundary-aware text chunker for messages and pages.

Long text is cut into windows of ``max_chars`` characters. Each cut is moved
forward to the next sentence end (within ``SENTENCE_LOOKAHEAD`` characters) or
back to the last space, so chunks rarely split a sentence or a word.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from archivist.db.models import Chunk

DEFAULT_MAX_CHARS = 3000
SENTENCE_LOOKAHEAD = 200

_SENTENCE_END = re.compile(r"[.!?]\s")


@dataclass
class TextChunk:
    text: str
    char_count: int
    index: int


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[TextChunk]:
    """Split *text* into stripped, sequentially indexed chunks.

    Args:
        text: Text to split.
        max_chars: Window size. A chunk is at most
            ``max_chars + SENTENCE_LOOKAHEAD`` characters long.

    Returns:
        Ordered chunks. Empty or whitespace-only input yields ``[]``.

    Raises:
        ValueError: If *max_chars* < 1.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")

    if len(text) <= max_chars:
        stripped = text.strip()
        return [TextChunk(stripped, len(stripped), 0)] if stripped else []

    chunks: list[TextChunk] = []
    length = len(text)
    start = 0

    while start < length:
        end = start + max_chars
        if end < length:
            end = _find_cut(text, start, end)

        piece = text[start:end].strip()
        if piece:
            chunks.append(TextChunk(piece, len(piece), len(chunks)))
        start = end

    return chunks


def _find_cut(text: str, start: int, end: int) -> int:
    """Return the cut position for the window ``text[start:end]``."""
    match = _SENTENCE_END.search(text, end, end + SENTENCE_LOOKAHEAD)
    if match:
        return match.end()

    last_space = text.rfind(" ", 0, end + 1)
    if last_space > start:
        return last_space + 1
    return end


def estimate_chunk_count(length: int, max_chars: int = DEFAULT_MAX_CHARS) -> int:
    """Rough number of chunks a text of *length* characters will produce."""
    if length <= 0:
        return 0
    return max(1, math.ceil(length / max_chars))


class Chunker:
    """Turns a Unit's text into unsaved ``Chunk`` rows."""

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        if max_chars < 1:
            raise ValueError("max_chars must be >= 1")
        self.max_chars = max_chars

    def chunk(self, unit_id: str, text: str) -> list[Chunk]:
        return [
            Chunk(unit_id=unit_id, chunk_index=c.index, text=c.text, char_count=c.char_count)
            for c in chunk_text(text, self.max_chars)
        ]
