"""Tests for SemanticSearch over ingested conversations."""

from __future__ import annotations

import pytest

from archivist.importers.base import SourceRecord, UnitRecord
from archivist.ingest.coordinator import IngestionCoordinator
from archivist.search.semantic import SearchFilters, SemanticSearch


def _conversation(id, created, texts):
    roles = ("human", "assistant")
    return SourceRecord(
        id=id,
        kind="conversation",
        title=f"Conversation {id}",
        created_at=created,
        updated_at=created,
        units=[
            UnitRecord(id=f"{id}-{i}", position=i, role=roles[i % 2], text=t, created_at=created)
            for i, t in enumerate(texts)
        ],
    )


@pytest.fixture
async def archive(repo, embedder):
    await IngestionCoordinator(repo, embedder).ingest(
        [
            _conversation(
                "py",
                "2024-01-10T09:00:00+00:00",
                ["How do I learn python?", "Start with python basics.", "Thanks!", "Also music?"],
            ),
            _conversation(
                "food",
                "2024-03-05T18:00:00+00:00",
                ["How do I cook rice?", "Cook it in water, cook gently."],
            ),
        ]
    )
    return repo


async def test_top_result_matches_query(archive, embedder):
    results = await SemanticSearch(archive, embedder).search("python", limit=3)
    assert results
    assert results[0].unit.source_id == "py"
    assert "python" in results[0].unit.text.lower()
    assert results[0].score > 0
    assert all(a.score >= b.score for a, b in zip(results, results[1:]))


async def test_results_carry_context(archive, embedder):
    results = await SemanticSearch(archive, embedder).search("cook cook", limit=1)
    top = results[0]
    assert top.unit.id == "food-1"
    assert [u.id for u in top.previous_units] == ["food-0"]
    assert top.next_units == []
    assert top.source.title == "Conversation food"


async def test_limit_respected(archive, embedder):
    assert len(await SemanticSearch(archive, embedder).search("python", limit=2)) == 2
    assert await SemanticSearch(archive, embedder).search("python", limit=0) == []


async def test_empty_archive(repo, embedder):
    assert await SemanticSearch(repo, embedder).search("anything") == []


async def test_role_filter(archive, embedder):
    results = await SemanticSearch(archive, embedder).search(
        "python", limit=10, filters=SearchFilters(role="assistant")
    )
    assert results
    assert {r.unit.role for r in results} == {"assistant"}


async def test_source_filter(archive, embedder):
    results = await SemanticSearch(archive, embedder).search(
        "python", limit=10, filters=SearchFilters(source_ids=["food"])
    )
    assert {r.unit.source_id for r in results} == {"food"}


async def test_date_filter(archive, embedder):
    results = await SemanticSearch(archive, embedder).search(
        "python", limit=10, filters=SearchFilters(start="2024-02-01", end="2024-12-31T23:59:59Z")
    )
    assert {r.unit.source_id for r in results} == {"food"}


async def test_filtered_search_still_honours_limit(archive, embedder):
    results = await SemanticSearch(archive, embedder).search(
        "python", limit=1, filters=SearchFilters(source_ids=["py"])
    )
    assert len(results) == 1
