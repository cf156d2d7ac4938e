"""Semantic search over archived messages and pages.

query → embedding → VectorIndex → filters → ContextEnricher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from archivist.db.models import parse_iso
from archivist.db.repository import Repository
from archivist.providers.embeddings import EmbeddingClient
from archivist.search.context import ContextEnricher, SearchResult
from archivist.search.vector_index import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


@dataclass
class SearchFilters:
    """Optional restrictions applied to matched Units.

    Attributes:
        role: Only Units with this role ('human', 'assistant', 'page').
        start: Inclusive lower bound on the Unit's created_at.
        end: Inclusive upper bound on the Unit's created_at.
        source_ids: Only Units belonging to one of these Sources.
    """

    role: str | None = None
    start: datetime | str | None = None
    end: datetime | str | None = None
    source_ids: list[str] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return bool(self.role or self.start or self.end or self.source_ids)


class SemanticSearch:
    """Search engine wiring the embedder, the vector index and the enricher.

    The index is initialized with the embedder's dimensionality on
    construction.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingClient,
        index: VectorIndex | None = None,
        enricher: ContextEnricher | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._index = index or VectorIndex(repo)
        self._index.initialize(embedder.dimensions)
        self._enricher = enricher or ContextEnricher(repo)

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        filters: SearchFilters | None = None,
    ) -> list[SearchResult]:
        """Return up to *limit* context-enriched results, best first."""
        if limit <= 0:
            return []
        filters = filters or SearchFilters()

        query_vector = await self._embedder.embed(query)
        # Filters are applied after the scan, so rank every Unit when filtering.
        hits = self._index.search(query_vector, None if filters.active else limit)
        if not hits:
            return []

        start = parse_iso(filters.start) if filters.start else None
        end = parse_iso(filters.end) if filters.end else None
        sources = {}

        results: list[SearchResult] = []
        for hit in hits:
            unit = self._repo.get_unit(hit.id)
            if unit is None:
                continue
            if filters.role and unit.role != filters.role:
                continue
            if filters.source_ids and unit.source_id not in filters.source_ids:
                continue
            if start or end:
                created = parse_iso(unit.created_at)
                if (start and created < start) or (end and created > end):
                    continue

            if unit.source_id not in sources:
                sources[unit.source_id] = self._repo.get_source(unit.source_id)
            source = sources[unit.source_id]
            if source is None:
                continue

            results.append(self._enricher.enrich(unit, hit.score, source))
            if len(results) >= limit:
                break

        logger.debug("Query %r: %d hits, %d results", query, len(hits), len(results))
        return results
