"""Neighbourhood enrichment for matched Units."""

from __future__ import annotations

from dataclasses import dataclass, field

from archivist.db.models import Source, Unit
from archivist.db.repository import Repository
from archivist.errors import NotFoundError


@dataclass
class SourceInfo:
    """Display metadata of a matched Unit's parent Source."""

    id: str
    kind: str
    title: str
    summary: str | None
    platform: str
    created_at: str
    updated_at: str

    @classmethod
    def from_source(cls, source: Source) -> SourceInfo:
        return cls(
            id=source.id,
            kind=source.kind,
            title=source.title,
            summary=source.summary,
            platform=source.platform,
            created_at=source.created_at,
            updated_at=source.updated_at,
        )


@dataclass
class SearchResult:
    unit: Unit
    source: SourceInfo
    score: float
    previous_units: list[Unit] = field(default_factory=list)
    next_units: list[Unit] = field(default_factory=list)


class ContextEnricher:
    """Attach surrounding Units and parent metadata to a matched Unit.

    Args:
        repo: Repository used for range queries.
        before: Units to include before the match.
        after: Units to include after the match.
    """

    def __init__(self, repo: Repository, before: int = 2, after: int = 1) -> None:
        if before < 0 or after < 0:
            raise ValueError("context window sizes must be >= 0")
        self._repo = repo
        self.before = before
        self.after = after

    def neighbors(self, source_id: str, position: int) -> tuple[list[Unit], list[Unit]]:
        """Return ``(previous_units, next_units)`` around *position*, ascending."""
        previous = self._range(source_id, position - self.before, position - 1)
        following = self._range(source_id, position + 1, position + self.after)
        return previous, following

    def enrich(self, unit: Unit, score: float, source: Source | None = None) -> SearchResult:
        """Build a SearchResult for *unit*.

        Raises:
            NotFoundError: If the Unit's Source is missing.
        """
        if source is None:
            source = self._repo.get_source(unit.source_id)
            if source is None:
                raise NotFoundError("source", unit.source_id)

        previous, following = self.neighbors(unit.source_id, unit.position)
        return SearchResult(
            unit=unit,
            source=SourceInfo.from_source(source),
            score=score,
            previous_units=previous,
            next_units=following,
        )

    def _range(self, source_id: str, start: int, end: int) -> list[Unit]:
        start = max(0, start)
        if end < start:
            return []
        return self._repo.get_units_in_range(source_id, start, end)
