"""Tests for the ContextEnricher."""

from __future__ import annotations

import pytest

from archivist.db.models import Chunk, Source, Unit
from archivist.errors import NotFoundError
from archivist.search.context import ContextEnricher

_TS = "2024-01-01T00:00:00+00:00"


@pytest.fixture
def conversation(repo):
    repo.add_source(Source(id="c", kind="conversation", title="Chat", created_at=_TS, updated_at=_TS, platform="claude"))
    for pos in range(6):
        unit = Unit(id=f"u{pos}", source_id="c", position=pos, role="human", text=f"m{pos}", created_at=_TS)
        repo.add_unit_with_chunks(unit, [Chunk(unit_id=unit.id, chunk_index=0, text=unit.text, char_count=2)])
    return repo


def _positions(units):
    return [u.position for u in units]


def test_default_window_is_two_before_one_after(conversation):
    enricher = ContextEnricher(conversation)
    before, after = enricher.neighbors("c", 3)
    assert _positions(before) == [1, 2]
    assert _positions(after) == [4]


def test_window_clamped_at_start(conversation):
    before, after = ContextEnricher(conversation, before=3, after=1).neighbors("c", 1)
    assert _positions(before) == [0]
    assert _positions(after) == [2]


def test_window_clamped_at_end(conversation):
    before, after = ContextEnricher(conversation, before=1, after=5).neighbors("c", 5)
    assert _positions(before) == [4]
    assert after == []


def test_zero_window(conversation):
    assert ContextEnricher(conversation, before=0, after=0).neighbors("c", 2) == ([], [])


def test_negative_window_rejected(repo):
    with pytest.raises(ValueError):
        ContextEnricher(repo, before=-1)


def test_enrich_builds_result(conversation):
    unit = conversation.get_unit("u0")
    result = ContextEnricher(conversation).enrich(unit, 0.9)
    assert result.unit is unit
    assert result.score == 0.9
    assert result.source.title == "Chat"
    assert result.source.platform == "claude"
    assert result.previous_units == []
    assert _positions(result.next_units) == [1]


def test_enrich_missing_source(repo):
    orphan = Unit(id="x", source_id="gone", position=0, role="human", text="", created_at=_TS)
    with pytest.raises(NotFoundError):
        ContextEnricher(repo).enrich(orphan, 0.5)
