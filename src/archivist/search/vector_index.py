"""Exact vector search over stored embeddings.

Every query is a full linear scan: all stored vectors are loaded, scored by
cosine similarity against the query, and reduced to one score per parent id
(the best-scoring child wins). Nothing is cached between queries.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from archivist.db.repository import ARTIFACT_TABLES, Repository
from archivist.db.vectors import deserialize_vector
from archivist.errors import DimensionMismatchError, UninitializedError


@dataclass
class VectorHit:
    """A parent id with its best child similarity.

    Attributes:
        id: Unit id (chunk search) or artifact id (table search).
        score: Cosine similarity in [-1, 1]; higher is closer.
        distance: ``1 - score``.
    """

    id: str
    score: float
    distance: float


def cosine_similarity(a: Sequence[float], b: Sequence[float], b_norm: float | None = None) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 when either norm is 0."""
    dot = 0.0
    a_sq = 0.0
    for x, y in zip(a, b):
        dot += x * y
        a_sq += x * x
    if b_norm is None:
        b_norm = math.sqrt(sum(y * y for y in b))
    denom = math.sqrt(a_sq) * b_norm
    if denom == 0:
        return 0.0
    return dot / denom


class VectorIndex:
    """Brute-force cosine index over chunk and artifact embeddings.

    Call ``initialize(dimensions)`` once before searching. The dimensionality
    cannot change afterwards.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._dimensions: int | None = None

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    def initialize(self, dimensions: int) -> None:
        """Fix the index dimensionality.

        Raises:
            ValueError: If *dimensions* < 1.
            DimensionMismatchError: If already initialized with another size.
        """
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        if self._dimensions is not None and self._dimensions != dimensions:
            raise DimensionMismatchError(
                self._dimensions, dimensions, what="index"
            )
        self._dimensions = dimensions

    def search(self, query: Sequence[float], limit: int | None = 20) -> list[VectorHit]:
        """Return Units ranked by their best chunk's similarity to *query*.

        Args:
            query: Query vector of length ``dimensions``.
            limit: Maximum hits; None returns every Unit with an embedding.

        Raises:
            UninitializedError: Before ``initialize()``.
            DimensionMismatchError: For a wrong-length query or stored vector.
        """
        dims = self._check_query(query)
        rows = ((unit_id, blob) for unit_id, _chunk_id, blob in self._repo.iter_chunk_embeddings())
        return self._rank(query, rows, dims, limit)

    def search_table(self, table: str, query: Sequence[float], limit: int | None = 20) -> list[VectorHit]:
        """Same scan over an artifact table (``learnings`` or ``topics``)."""
        if table not in ARTIFACT_TABLES:
            raise ValueError(f"Unknown artifact table '{table}'")
        dims = self._check_query(query)
        return self._rank(query, self._repo.iter_artifact_embeddings(table), dims, limit)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_query(self, query: Sequence[float]) -> int:
        if self._dimensions is None:
            raise UninitializedError("VectorIndex not initialized. Call initialize() first.")
        if len(query) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(query), what="query vector")
        return self._dimensions

    @staticmethod
    def _rank(
        query: Sequence[float],
        rows: Iterable[tuple[str, bytes]],
        dims: int,
        limit: int | None,
    ) -> list[VectorHit]:
        if limit is not None and limit <= 0:
            return []

        query_norm = math.sqrt(sum(q * q for q in query))
        best: dict[str, float] = {}
        for parent_id, blob in rows:
            vector = deserialize_vector(blob, dims)
            score = cosine_similarity(vector, query, query_norm)
            if parent_id not in best or score > best[parent_id]:
                best[parent_id] = score

        ranked = sorted(best.items(), key=lambda item: item[1], reverse=True)
        if limit is not None:
            ranked = ranked[:limit]
        return [VectorHit(id=pid, score=score, distance=1.0 - score) for pid, score in ranked]
