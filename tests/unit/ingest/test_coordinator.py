"""Tests for the IngestionCoordinator."""

from __future__ import annotations

import json

import pytest

from archivist.cancellation import CancellationToken
from archivist.errors import TransientProviderError
from archivist.importers.base import RejectedSource, SourceRecord, UnitRecord
from archivist.importers.claude import ClaudeImporter
from archivist.ingest.coordinator import IngestionCoordinator, IngestReport, UnitState
from archivist.results import ItemResult

_TS = "2024-01-01T10:00:00+00:00"


def _unit(id, position, role="human", text=None):
    return UnitRecord(id=id, position=position, role=role, text=text or f"message {id}", created_at=_TS)


def _source(id="conv-1", units=None, kind="conversation"):
    if units is None:
        units = [_unit(f"{id}-m0", 0), _unit(f"{id}-m1", 1, role="assistant")]
    return SourceRecord(id=id, kind=kind, title=f"Conversation {id}", created_at=_TS, updated_at=_TS, units=units)


class _FlakyEmbedder:
    """Wraps an embedder and fails every text containing 'boom'."""

    def __init__(self, inner):
        self._inner = inner
        self.dimensions = inner.dimensions

    async def embed(self, text):
        if "boom" in text:
            raise TransientProviderError("rate limited after 3 attempts", attempts=3)
        return await self._inner.embed(text)

    async def embed_batch(self, texts):
        return [await self.embed(t) for t in texts]


# ------------------------------------------------------------------
# Happy path and idempotence
# ------------------------------------------------------------------


async def test_ingest_two_units(repo, embedder):
    report = await IngestionCoordinator(repo, embedder).ingest([_source()])

    assert report.sources_new == 1
    assert report.units_new == 2
    assert report.chunks_created == 2
    assert report.failures == []
    assert repo.count_units("conv-1") == 2
    assert repo.count_embedded_chunks() == 2
    assert [u.role for u in repo.list_units("conv-1")] == ["human", "assistant"]


async def test_source_row_carries_unit_count(repo, embedder):
    await IngestionCoordinator(repo, embedder).ingest([_source()])
    assert repo.get_source("conv-1").unit_count == 2


async def test_reingest_makes_no_embedding_calls(repo, embedder):
    await IngestionCoordinator(repo, embedder).ingest([_source()])
    embedder.calls.clear()

    report = await IngestionCoordinator(repo, embedder).ingest([_source()])

    assert embedder.calls == []
    assert report.sources_new == 0
    assert report.sources_skipped == 1
    assert report.units_skipped == 2
    assert report.units_new == 0
    assert repo.count_chunks() == 2


async def test_new_units_of_stored_source_are_added(repo, embedder):
    await IngestionCoordinator(repo, embedder).ingest([_source()])
    embedder.calls.clear()

    grown = _source(units=[_unit("conv-1-m0", 0), _unit("conv-1-m1", 1, role="assistant"), _unit("conv-1-m2", 2)])
    report = await IngestionCoordinator(repo, embedder).ingest([grown])

    assert report.units_skipped == 2
    assert report.units_new == 1
    assert embedder.calls == ["message conv-1-m2"]
    assert repo.count_units("conv-1") == 3


async def test_long_unit_is_chunked(repo, embedder):
    text = "python is fun. " * 40
    report = await IngestionCoordinator(repo, embedder, max_chars=100).ingest(
        [_source(units=[_unit("m0", 0, text=text)])]
    )
    assert report.chunks_created > 1
    assert repo.get_unit("m0").chunk_count == report.chunks_created
    assert repo.get_unit("m0").text == text


async def test_sources_pulled_in_batches(repo, embedder):
    sources = [_source(f"conv-{i}") for i in range(5)]
    report = await IngestionCoordinator(repo, embedder, batch_size=2).ingest(iter(sources))
    assert report.sources_new == 5
    assert repo.count_units() == 10


async def test_duplicate_source_in_one_run_counted_once(repo, embedder):
    report = await IngestionCoordinator(repo, embedder).ingest([_source(), _source()])
    assert report.sources_new == 1
    assert report.sources_skipped == 1
    assert repo.count_units() == 2


# ------------------------------------------------------------------
# Per-item failures
# ------------------------------------------------------------------


async def test_unknown_source_kind_fails_only_that_source(repo, embedder):
    report = await IngestionCoordinator(repo, embedder).ingest(
        [_source("bad", kind="email"), _source("good")]
    )
    assert [r.item_id for r in report.source_results] == ["bad"]
    assert repo.get_source("bad") is None
    assert repo.count_units("good") == 2


async def test_invalid_role_fails_only_that_unit(repo, embedder):
    units = [_unit("m0", 0), _unit("m1", 1, role="system")]
    report = await IngestionCoordinator(repo, embedder).ingest([_source(units=units)])

    failed = report.failures
    assert [r.item_id for r in failed] == ["m1"]
    assert failed[0].value is UnitState.FAILED
    assert repo.get_unit("m0") is not None
    assert repo.get_unit("m1") is None


async def test_duplicate_position_in_batch_rejected(repo, embedder):
    units = [_unit("m0", 0), _unit("m0-dup", 0)]
    report = await IngestionCoordinator(repo, embedder).ingest([_source(units=units)])
    assert [r.item_id for r in report.failures] == ["m0-dup"]
    assert "Duplicate position" in report.failures[0].error


async def test_position_taken_by_stored_unit_rejected(repo, embedder):
    await IngestionCoordinator(repo, embedder).ingest([_source(units=[_unit("m0", 0)])])
    report = await IngestionCoordinator(repo, embedder).ingest(
        [_source(units=[_unit("other", 0)])]
    )
    assert [r.item_id for r in report.failures] == ["other"]
    assert repo.unit_positions("conv-1") == {0: "m0"}


async def test_embedding_failure_leaves_no_partial_rows(repo, embedder):
    units = [_unit("m0", 0), _unit("m1", 1, text="boom goes the provider")]
    report = await IngestionCoordinator(repo, _FlakyEmbedder(embedder)).ingest([_source(units=units)])

    assert report.units_new == 1
    failure = report.failures[0]
    assert failure.item_id == "m1"
    assert failure.error.startswith("chunked:")
    assert repo.get_unit("m1") is None
    assert repo.count_chunks() == 1


async def test_failed_unit_is_retried_on_next_run(repo, embedder):
    units = [_unit("m0", 0, text="boom")]
    await IngestionCoordinator(repo, _FlakyEmbedder(embedder)).ingest([_source(units=units)])

    report = await IngestionCoordinator(repo, embedder).ingest([_source(units=units)])
    assert report.units_new == 1
    assert report.units_skipped == 0


async def test_rejected_source_fails_only_itself(repo, embedder):
    report = await IngestionCoordinator(repo, embedder).ingest(
        [_source("good"), RejectedSource("conversation #1", "missing field 'uuid'"), _source("after")]
    )

    assert [(r.item_id, r.error) for r in report.source_results] == [
        ("conversation #1", "missing field 'uuid'")
    ]
    assert report.sources_new == 2
    assert repo.count_units() == 4
    assert report.summary()["units_failed"] == 0


async def test_claude_export_with_bad_sender_and_bad_conversation(repo, embedder, tmp_path):
    def message(uuid, sender, text):
        return {"uuid": uuid, "sender": sender, "text": text, "created_at": _TS}

    def conversation(uuid, messages):
        return {"uuid": uuid, "name": uuid, "created_at": _TS, "updated_at": _TS, "chat_messages": messages}

    broken = conversation("broken", [])
    del broken["created_at"]
    export = [
        conversation("good", [message("g0", "human", "python?")]),
        conversation("bad", [message("b0", "human", "hello"), message("b1", "system", "injected")]),
        broken,
        conversation("after", [message("a0", "human", "cook rice")]),
    ]
    path = tmp_path / "conversations.json"
    path.write_text(json.dumps(export), encoding="utf-8")

    with ClaudeImporter().open(path) as stream:
        report = await IngestionCoordinator(repo, embedder).ingest(stream)

    assert report.sources_new == 3
    assert [r.item_id for r in report.source_results] == ["broken"]
    assert [r.item_id for r in report.unit_results if not r.ok] == ["b1"]
    assert "Unknown role 'system'" in report.failures[-1].error
    assert {u.id for u in repo.list_units("bad")} == {"b0"}
    assert repo.get_unit("g0") is not None
    assert repo.get_unit("a0") is not None


def test_units_failed_excludes_source_failures():
    report = IngestReport(
        source_results=[ItemResult.failure("src", "bad kind")],
        unit_results=[ItemResult.failure("u1", "boom", status="failed")],
    )
    report.unit_results[0].value = UnitState.FAILED
    assert report.units_failed == 1
    assert report.summary()["units_failed"] == 1


# ------------------------------------------------------------------
# Cancellation and progress
# ------------------------------------------------------------------


async def test_cancelled_token_starts_nothing(repo, embedder):
    token = CancellationToken()
    token.cancel()
    report = await IngestionCoordinator(repo, embedder, cancel_token=token).ingest([_source()])
    assert embedder.calls == []
    assert report.unit_results == []
    assert repo.count_sources() == 0


async def test_cancel_mid_run_marks_remaining_units(repo, embedder):
    token = CancellationToken()
    units = [_unit(f"m{i}", i) for i in range(4)]
    coordinator = IngestionCoordinator(
        repo,
        embedder,
        concurrency=1,
        cancel_token=token,
        on_unit_done=lambda _r: token.cancel(),
    )

    report = await coordinator.ingest([_source(units=units)])

    assert report.units_new == 1
    assert report.units_cancelled == 3
    assert report.summary()["units_cancelled"] == 3
    assert report.summary()["units_failed"] == 0
    assert repo.count_units() == 1


async def test_on_unit_done_called_per_unit(repo, embedder):
    seen = []
    await IngestionCoordinator(repo, embedder, on_unit_done=seen.append).ingest([_source()])
    assert sorted(r.item_id for r in seen) == ["conv-1-m0", "conv-1-m1"]
    assert all(r.status == UnitState.PERSISTED.value for r in seen)


def test_invalid_settings_rejected(repo, embedder):
    with pytest.raises(ValueError):
        IngestionCoordinator(repo, embedder, concurrency=0)
    with pytest.raises(ValueError):
        IngestionCoordinator(repo, embedder, batch_size=0)
