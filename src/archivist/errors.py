"""Error taxonomy shared by the ingestion, search, and extraction layers."""

from __future__ import annotations


class ArchivistError(Exception):
    """Base class for all Archivist errors."""


class ValidationError(ArchivistError):
    """LLM output did not match the requested schema. Fatal, never retried."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.details = details


class DimensionMismatchError(ArchivistError):
    """A query or stored vector length disagrees with the index dimensionality."""

    def __init__(self, expected: int, actual: int, what: str = "vector") -> None:
        super().__init__(
            f"{what.capitalize()} dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class NotFoundError(ArchivistError):
    """A referenced source entity does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class TransientProviderError(ArchivistError):
    """Rate limit or network failure from an external provider.

    Raised after the retry budget is exhausted; ``attempts`` records how many
    calls were made and the message carries the last underlying failure.
    """

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class UninitializedError(ArchivistError):
    """Vector search was used before ``initialize()``."""


class CancelledError(ArchivistError):
    """Work was stopped through a CancellationToken."""
