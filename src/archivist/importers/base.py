"""Normalized import records and the pull-based import stream.

Importers turn a platform export into ``SourceRecord`` objects, one Source at
a time. Consumers pull from a ``SourceStream`` and close it when done (or use
it as a context manager); closing stops the underlying reader early.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class UnitRecord:
    """One message or page, as produced by an importer."""

    id: str
    position: int
    role: str
    text: str
    created_at: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceRecord:
    """One conversation or document with its ordered units."""

    id: str
    kind: str
    title: str
    created_at: str
    updated_at: str
    units: list[UnitRecord] = field(default_factory=list)
    summary: str | None = None
    platform: str = ""
    path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RejectedSource:
    """An export entry the importer could not normalize.

    Yielded in place of a ``SourceRecord`` so the rest of the stream can
    still be read; consumers report it as a failed Source.
    """

    id: str
    error: str


class SourceStream:
    """Lazy iterator over ``SourceRecord`` objects with an explicit close.

    The reader is created on first pull, so opening a stream does no I/O.
    Each ``ConversationImporter.open()`` call returns a fresh stream.
    """

    def __init__(self, reader: Callable[[], Iterator[SourceRecord | RejectedSource]]) -> None:
        self._reader = reader
        self._iter: Iterator[SourceRecord | RejectedSource] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> SourceStream:
        return self

    def __next__(self) -> SourceRecord | RejectedSource:
        if self._closed:
            raise StopIteration
        if self._iter is None:
            self._iter = self._reader()
        try:
            return next(self._iter)
        except StopIteration:
            self.close()
            raise

    def close(self) -> None:
        """Stop reading. Further pulls end the iteration immediately."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._iter, "close", None)
        if close is not None:
            close()
        self._iter = None

    def __enter__(self) -> SourceStream:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class ConversationImporter(ABC):
    """Abstract base for platform-specific export readers."""

    platform: str = ""

    def open(self, path: Path | str) -> SourceStream:
        """Return a stream of normalized Sources read from *path*."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Export file not found: {file_path}")
        return SourceStream(lambda: self.read(file_path))

    @abstractmethod
    def read(self, path: Path) -> Iterator[SourceRecord | RejectedSource]:
        """Yield Sources from the export at *path*, in file order.

        An entry that cannot be normalized is yielded as a ``RejectedSource``
        instead of ending the stream.
        """
