"""Ingestion coordinator: idempotent chunk → embed → persist for imported Sources.

Sources are pulled from the importer in batches. Per batch:

1. One existence query over every incoming Source id; only new Sources are
   inserted.
2. Per Source (new or already stored), one query for the Unit ids it already
   has; only new Units go on.
3. New Units run under a bounded worker pool. Each Unit moves
   PENDING → CHUNKED → EMBEDDED → PERSISTED, or ends FAILED / CANCELLED.

A Unit's row and its chunk rows are written in one transaction on the single
writer connection. Writes are plain synchronous calls, so no transaction is
ever open across an ``await``.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from archivist.cancellation import CancellationToken
from archivist.db.models import SOURCE_KINDS, UNIT_ROLES, Source, Unit, now_iso
from archivist.db.repository import Repository
from archivist.importers.base import RejectedSource, SourceRecord, UnitRecord
from archivist.ingest.chunking import DEFAULT_MAX_CHARS, Chunker
from archivist.providers.embeddings import EmbeddingClient
from archivist.results import ItemResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_CONCURRENCY = 10


class UnitState(str, Enum):
    PENDING = "pending"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    PERSISTED = "persisted"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class IngestReport:
    """Per-item outcome of an ingestion run.

    ``unit_results`` holds one entry per Unit that was attempted (new Units
    only); ``source_results`` holds Sources that were rejected outright, by
    the importer or for an unknown kind.
    """

    sources_new: int = 0
    sources_skipped: int = 0
    units_skipped: int = 0
    chunks_created: int = 0
    unit_results: list[ItemResult[UnitState]] = field(default_factory=list)
    source_results: list[ItemResult[None]] = field(default_factory=list)

    @property
    def units_new(self) -> int:
        return sum(1 for r in self.unit_results if r.ok)

    @property
    def units_cancelled(self) -> int:
        return sum(1 for r in self.unit_results if r.value is UnitState.CANCELLED)

    @property
    def units_failed(self) -> int:
        return sum(1 for r in self.unit_results if not r.ok) - self.units_cancelled

    @property
    def failures(self) -> list[ItemResult]:
        return [r for r in (*self.source_results, *self.unit_results) if not r.ok]

    def summary(self) -> dict:
        return {
            "sources_new": self.sources_new,
            "sources_skipped": self.sources_skipped,
            "units_new": self.units_new,
            "units_skipped": self.units_skipped,
            "units_failed": self.units_failed,
            "units_cancelled": self.units_cancelled,
            "chunks_created": self.chunks_created,
            "errors": [f"{r.item_id}: {r.error}" for r in self.failures],
        }


class IngestionCoordinator:
    """Drive ingestion of imported Sources into the archive.

    Args:
        repo: Repository over the single writer connection.
        embedder: Embedding client; its concurrency limit bounds provider calls.
        max_chars: Chunk window size.
        concurrency: Maximum Units processed at once.
        batch_size: Sources pulled per existence query.
        cancel_token: Stops new Units from starting when cancelled.
        on_unit_done: Called with each Unit's ItemResult (progress reporting).
    """

    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingClient,
        max_chars: int = DEFAULT_MAX_CHARS,
        concurrency: int = DEFAULT_CONCURRENCY,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_token: CancellationToken | None = None,
        on_unit_done: Callable[[ItemResult[UnitState]], None] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self._chunker = Chunker(max_chars)
        self._concurrency = concurrency
        self._batch_size = batch_size
        self._token = cancel_token or CancellationToken()
        self._on_unit_done = on_unit_done

    async def ingest(self, sources: Iterable[SourceRecord | RejectedSource]) -> IngestReport:
        """Ingest *sources* and return the per-item report.

        Provider or integrity failures fail only the affected Unit, and a
        ``RejectedSource`` from the importer fails only that Source; the run
        itself only raises for programming errors or an unreadable stream.
        """
        report = IngestReport()
        semaphore = asyncio.Semaphore(self._concurrency)
        iterator = iter(sources)

        while not self._token.cancelled:
            batch = list(itertools.islice(iterator, self._batch_size))
            if not batch:
                break
            await self._ingest_batch(batch, semaphore, report)

        logger.info("Ingestion finished: %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # Batch level
    # ------------------------------------------------------------------

    async def _ingest_batch(
        self,
        batch: list[SourceRecord | RejectedSource],
        semaphore: asyncio.Semaphore,
        report: IngestReport,
    ) -> None:
        rejected = [r for r in batch if isinstance(r, RejectedSource)]
        for record in rejected:
            report.source_results.append(ItemResult.failure(record.id, record.error))

        records = [r for r in batch if isinstance(r, SourceRecord)]
        existing = self._repo.existing_source_ids(s.id for s in records)
        seen: set[str] = set()
        accepted: list[SourceRecord] = []
        added = 0

        for record in records:
            # A repeated id within the batch is handled by its first occurrence.
            if record.id in seen:
                report.sources_skipped += 1
                continue
            seen.add(record.id)
            if record.id in existing:
                report.sources_skipped += 1
                accepted.append(record)
                continue
            if record.kind not in SOURCE_KINDS:
                report.source_results.append(
                    ItemResult.failure(record.id, f"Unknown source kind '{record.kind}'")
                )
                continue
            self._repo.add_source(_to_source(record))
            report.sources_new += 1
            added += 1
            accepted.append(record)

        logger.debug(
            "Batch of %d sources: %d new, %d already stored, %d rejected by the importer",
            len(batch), added, len(accepted) - added, len(rejected),
        )

        jobs: list[tuple[str, UnitRecord]] = []
        for record in accepted:
            jobs.extend((record.id, unit) for unit in self._select_new_units(record, report))

        results = await asyncio.gather(
            *(self._process_unit(source_id, unit, semaphore) for source_id, unit in jobs)
        )
        for result in results:
            if result.ok:
                report.chunks_created += result.value_chunks
            report.unit_results.append(result.item)

    def _select_new_units(self, record: SourceRecord, report: IngestReport) -> list[UnitRecord]:
        """Drop stored Units; reject invalid roles and position clashes."""
        stored_ids = self._repo.existing_unit_ids(record.id, (u.id for u in record.units))
        stored_positions = self._repo.unit_positions(record.id)
        claimed: set[int] = set()
        selected: list[UnitRecord] = []

        for unit in record.units:
            if unit.id in stored_ids:
                report.units_skipped += 1
                continue

            error = None
            if unit.role not in UNIT_ROLES:
                error = f"Unknown role '{unit.role}'"
            elif unit.position < 0:
                error = f"Negative position {unit.position}"
            elif unit.position in claimed:
                error = f"Duplicate position {unit.position} in source {record.id}"
            elif unit.position in stored_positions:
                error = (
                    f"Position {unit.position} of source {record.id} is already "
                    f"taken by unit {stored_positions[unit.position]}"
                )

            if error:
                self._record(report, ItemResult.failure(unit.id, error), UnitState.FAILED)
                continue
            claimed.add(unit.position)
            selected.append(unit)

        return selected

    def _record(self, report: IngestReport, result: ItemResult, state: UnitState) -> None:
        result.value = state
        result.status = state.value
        report.unit_results.append(result)
        if self._on_unit_done:
            self._on_unit_done(result)

    # ------------------------------------------------------------------
    # Unit level
    # ------------------------------------------------------------------

    async def _process_unit(
        self,
        source_id: str,
        unit: UnitRecord,
        semaphore: asyncio.Semaphore,
    ) -> _UnitOutcome:
        async with semaphore:
            if self._token.cancelled:
                return self._finish(_UnitOutcome.of(unit.id, UnitState.CANCELLED, "Cancelled before start"))

            state = UnitState.PENDING
            try:
                chunks = self._chunker.chunk(unit.id, unit.text)
                state = UnitState.CHUNKED

                vectors = await self._embedder.embed_batch([c.text for c in chunks])
                for chunk, vector in zip(chunks, vectors):
                    chunk.embedding = vector
                state = UnitState.EMBEDDED

                self._repo.add_unit_with_chunks(
                    Unit(
                        id=unit.id,
                        source_id=source_id,
                        position=unit.position,
                        role=unit.role,
                        text=unit.text,
                        created_at=unit.created_at,
                        chunk_count=len(chunks),
                    ),
                    chunks,
                )
            except Exception as exc:
                logger.warning("Unit %s failed while %s: %s", unit.id, state.value, exc)
                return self._finish(_UnitOutcome.of(unit.id, UnitState.FAILED, f"{state.value}: {exc}"))

            return self._finish(_UnitOutcome.of(unit.id, UnitState.PERSISTED, chunks=len(chunks)))

    def _finish(self, outcome: _UnitOutcome) -> _UnitOutcome:
        if self._on_unit_done:
            self._on_unit_done(outcome.item)
        return outcome


@dataclass
class _UnitOutcome:
    item: ItemResult[UnitState]
    value_chunks: int = 0

    @property
    def ok(self) -> bool:
        return self.item.ok

    @classmethod
    def of(cls, unit_id: str, state: UnitState, error: str | None = None, chunks: int = 0) -> _UnitOutcome:
        if state is UnitState.PERSISTED:
            item = ItemResult.success(unit_id, state, status=state.value)
        else:
            item = ItemResult.failure(unit_id, error or state.value, status=state.value)
            item.value = state
        return cls(item=item, value_chunks=chunks)


def _to_source(record: SourceRecord) -> Source:
    return Source(
        id=record.id,
        kind=record.kind,
        title=record.title,
        summary=record.summary,
        platform=record.platform,
        path=record.path,
        unit_count=len(record.units),
        metadata=json.dumps(record.metadata),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
