"""Async embedding client over LiteLLM.

``embed_batch`` fans each text out to ``embed`` under a semaphore and returns
vectors in input order. Every call is retried on transient provider errors
(see archivist.providers.retry); litellm's own retry loop is disabled so the
attempt count is exact.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import litellm

from archivist.errors import DimensionMismatchError
from archivist.providers.retry import DEFAULT_MAX_ATTEMPTS, retry_async

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

DEFAULT_EMBEDDING_MODEL = "gemini/text-embedding-004"
DEFAULT_DIMENSIONS = 768
DEFAULT_CONCURRENCY = 10


class EmbeddingClient:
    """Embedding provider handle with a fixed, declared dimensionality.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Length of every vector this model returns.
        concurrency: Maximum in-flight provider calls.
        max_attempts: Attempts per text before TransientProviderError.
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.model = model
        self.dimensions = dimensions
        self.max_attempts = max_attempts
        self._semaphore = asyncio.Semaphore(concurrency)

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Bounded by the client's concurrency limit."""
        async with self._semaphore:
            vector = await retry_async(
                lambda: self._call(text),
                max_attempts=self.max_attempts,
                description=f"Embedding with {self.model}",
            )
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(vector), what="embedding")
        return vector

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* concurrently; result ``i`` belongs to ``texts[i]``.

        The first failing text's error propagates after every unfinished call
        has been cancelled and awaited; no provider call outlives the batch.
        """
        if not texts:
            return []
        logger.debug("Embedding %d texts with %s", len(texts), self.model)
        tasks = [asyncio.ensure_future(self.embed(t)) for t in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _call(self, text: str) -> list[float]:
        response = await litellm.aembedding(
            model=self.model,
            input=[text],
            num_retries=0,
        )
        return list(response.data[0]["embedding"])
