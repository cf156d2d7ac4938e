"""Run one extraction per id, concurrently, with per-item results."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from archivist.cancellation import CancellationToken
from archivist.results import BatchReport, ItemResult

logger = logging.getLogger(__name__)

A = TypeVar("A")

DEFAULT_CONCURRENCY = 10


async def extract_many(
    extract: Callable[[str], Awaitable[list[A]]],
    ids: Iterable[str],
    concurrency: int = DEFAULT_CONCURRENCY,
    cancel_token: CancellationToken | None = None,
    on_item_done: Callable[[ItemResult[list[A]]], None] | None = None,
) -> BatchReport[list[A]]:
    """Call ``extract(id)`` for every id and collect the outcomes.

    A failing item is recorded and never stops its siblings. Items not yet
    started when *cancel_token* fires are recorded with status 'cancelled'.

    Args:
        extract: Coroutine function for a single id (e.g. a bound
            ``LearningExtractor.extract_from_conversation``).
        ids: Ids to process; duplicates are processed once.
        concurrency: Maximum extractions in flight.
        cancel_token: Optional cancellation signal.
        on_item_done: Called with each ItemResult as it completes.

    Returns:
        A BatchReport with one ItemResult per distinct id, in input order.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    token = cancel_token or CancellationToken()
    semaphore = asyncio.Semaphore(concurrency)

    async def run_one(item_id: str) -> ItemResult[list[A]]:
        async with semaphore:
            if token.cancelled:
                result = ItemResult.failure(item_id, "Cancelled before start", status="cancelled")
            else:
                try:
                    artifacts = await extract(item_id)
                    result = ItemResult.success(item_id, artifacts)
                except Exception as exc:
                    logger.warning("Extraction for %s failed: %s", item_id, exc)
                    result = ItemResult.failure(item_id, f"{type(exc).__name__}: {exc}")
        if on_item_done:
            on_item_done(result)
        return result

    unique = list(dict.fromkeys(ids))
    report: BatchReport[list[A]] = BatchReport()
    for result in await asyncio.gather(*(run_one(i) for i in unique)):
        report.add(result)
    logger.info("Batch extraction finished: %s", report.summary())
    return report
