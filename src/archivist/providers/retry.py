"""Exponential-backoff retry for provider calls.

Delay before retry ``n`` (1-based attempt that just failed) is ``2 ** n``
seconds. Only transient provider errors are retried; anything else
propagates on the first failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import litellm

from archivist.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    litellm.RateLimitError,
    litellm.APIConnectionError,
    litellm.Timeout,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    TransientProviderError,
)


def backoff_delay(attempt: int) -> float:
    return float(2**attempt)


async def retry_async(
    call: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    description: str = "provider call",
) -> T:
    """Await ``call()`` until it succeeds or *max_attempts* is reached.

    Args:
        call: Zero-argument coroutine factory; a fresh coroutine is created per
            attempt.
        max_attempts: Total number of attempts (>= 1).
        description: Used in log lines and the final error message.

    Returns:
        The first successful result.

    Raises:
        TransientProviderError: After every attempt failed transiently. The
            message contains the last failure's message.
        Exception: Any non-transient error, unchanged, on first occurrence.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await call()
        except TRANSIENT_ERRORS as exc:
            last_error = exc
            if attempt < max_attempts:
                delay = backoff_delay(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.0fs",
                    description, attempt, max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)

    raise TransientProviderError(
        f"{description} failed after {max_attempts} attempts: {last_error}",
        attempts=max_attempts,
    ) from last_error
