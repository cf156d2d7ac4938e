"""Explicit cancellation signal for long-running batches."""

from __future__ import annotations

import asyncio

from archivist.errors import CancelledError


class CancellationToken:
    """Cooperative cancellation flag checked before new work is started.

    Work already in flight is allowed to finish; anything not yet started is
    reported as cancelled by the caller that owns the batch.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("Operation cancelled")

    async def wait(self) -> None:
        await self._event.wait()
