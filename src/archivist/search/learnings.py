"""Semantic search over extracted learnings and topics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from archivist.db.models import Learning, Topic, parse_iso
from archivist.db.repository import Repository
from archivist.providers.embeddings import EmbeddingClient
from archivist.search.context import SourceInfo
from archivist.search.semantic import DEFAULT_LIMIT
from archivist.search.vector_index import VectorIndex

# Candidates fetched per requested result, leaving room for date filtering.
_OVERFETCH = 2


@dataclass
class LearningSearchResult:
    learning: Learning
    score: float
    source: SourceInfo | None = None
    topic: Topic | None = None


@dataclass
class TopicSearchResult:
    topic: Topic
    score: float
    document: SourceInfo | None = None


class LearningSearch:
    """Rank learnings (and topics) by similarity to a free-text query."""

    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingClient,
        index: VectorIndex | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._index = index or VectorIndex(repo)
        self._index.initialize(embedder.dimensions)

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        start: datetime | str | None = None,
        end: datetime | str | None = None,
    ) -> list[LearningSearchResult]:
        """Return up to *limit* learnings, best first.

        Each result carries the conversation or the topic it was extracted
        from, when that still exists.
        """
        if limit <= 0:
            return []

        query_vector = await self._embedder.embed(query)
        hits = self._index.search_table("learnings", query_vector, limit * _OVERFETCH)
        if not hits:
            return []

        lower = parse_iso(start) if start else None
        upper = parse_iso(end) if end else None
        learnings = self._repo.get_learnings(h.id for h in hits)

        results: list[LearningSearchResult] = []
        for hit in hits:
            learning = learnings.get(hit.id)
            if learning is None:
                continue
            created = parse_iso(learning.created_at)
            if (lower and created < lower) or (upper and created > upper):
                continue
            results.append(self._attach_origin(learning, hit.score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def search_topics(self, query: str, limit: int = DEFAULT_LIMIT) -> list[TopicSearchResult]:
        """Return up to *limit* topics, best first, with their document."""
        if limit <= 0:
            return []
        query_vector = await self._embedder.embed(query)
        hits = self._index.search_table("topics", query_vector, limit)
        topics = self._repo.get_topics(h.id for h in hits)
        documents = self._repo.get_sources(t.document_id for t in topics.values())

        results = []
        for hit in hits:
            topic = topics.get(hit.id)
            if topic is None:
                continue
            document = documents.get(topic.document_id)
            results.append(
                TopicSearchResult(
                    topic=topic,
                    score=hit.score,
                    document=SourceInfo.from_source(document) if document else None,
                )
            )
        return results

    def _attach_origin(self, learning: Learning, score: float) -> LearningSearchResult:
        result = LearningSearchResult(learning=learning, score=score)
        if learning.source_type == "topic":
            result.topic = self._repo.get_topic(learning.source_id)
            source_id = result.topic.document_id if result.topic else None
        else:
            source_id = learning.source_id
        if source_id:
            source = self._repo.get_source(source_id)
            if source is not None:
                result.source = SourceInfo.from_source(source)
        return result
