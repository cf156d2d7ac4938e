"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from archivist.db.connection import Database
from archivist.db.migrations import initialize
from archivist.db.repository import Repository
from archivist.db.vectors import ensure_store_dimensions

# Keyword axes for FakeEmbedder; the last axis is a constant so no vector is zero.
_AXES = ("python", "cook", "music")


class FakeEmbedder:
    """Deterministic stand-in for EmbeddingClient.

    Each text maps to ``[#python, #cook, #music, 0.1]`` (case-insensitive
    substring counts), so texts about the same keyword are close in cosine
    space. Every embedded text is recorded in ``calls``.
    """

    model = "fake/keywords"
    dimensions = len(_AXES) + 1

    def __init__(self) -> None:
        self.calls: list[str] = []

    def vector(self, text: str) -> list[float]:
        lower = text.lower()
        return [float(lower.count(word)) for word in _AXES] + [0.1]

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "archive.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    ensure_store_dimensions(tmp_db, FakeEmbedder.model, FakeEmbedder.dimensions)
    return Repository(tmp_db)


@pytest.fixture
def embedder():
    return FakeEmbedder()
