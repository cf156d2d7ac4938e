"""Per-item result records for batch operations.

Batch loops never swallow errors: every item ends up as an ``ItemResult``
in a report, so failures are visible to callers and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class ItemResult(Generic[T]):
    """Outcome of one item in a batch (a Unit, a Source, an extraction)."""

    item_id: str
    ok: bool
    value: T | None = None
    error: str | None = None
    status: str = ""

    @classmethod
    def success(cls, item_id: str, value: T | None = None, status: str = "ok") -> ItemResult[T]:
        return cls(item_id=item_id, ok=True, value=value, status=status)

    @classmethod
    def failure(cls, item_id: str, error: BaseException | str, status: str = "failed") -> ItemResult[T]:
        return cls(item_id=item_id, ok=False, error=str(error), status=status)


@dataclass
class BatchReport(Generic[T]):
    """Summary of a batch run: counts plus the individual results."""

    results: list[ItemResult[T]] = field(default_factory=list)

    def add(self, result: ItemResult[T]) -> None:
        self.results.append(result)

    @property
    def succeeded(self) -> list[ItemResult[T]]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ItemResult[T]]:
        return [r for r in self.results if not r.ok]

    def summary(self) -> dict[str, Any]:
        return {
            "total": len(self.results),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "errors": [f"{r.item_id}: {r.error}" for r in self.failed],
        }
