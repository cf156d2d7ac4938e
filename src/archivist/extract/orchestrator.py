"""Extraction orchestrator: source entity → LLM → validated, embedded artifacts.

One ``extract`` call handles one ``(source_type, source_id)`` key:

1. Artifacts already stored and no overwrite → return them (no LLM call).
2. Overwrite → delete the stored artifacts for the key.
3. Load the entity and build its context string.
4. Ask the LLM for a validated array of candidates.
5. An empty array stores nothing.
6. Embed one derived text per artifact, assign fresh ids, persist in one
   transaction.

What varies per artifact kind (which table, which schema, how context and
embedding texts are built) lives in an ``ExtractionSpec``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from archivist.db.models import now_iso
from archivist.errors import NotFoundError, TransientProviderError, ValidationError
from archivist.providers.embeddings import EmbeddingClient
from archivist.providers.llm import LLMClient, Ok, SchemaError, TransportError

logger = logging.getLogger(__name__)

A = TypeVar("A")  # stored artifact (Learning, Topic)
C = TypeVar("C", bound=BaseModel)  # validated LLM candidate


@dataclass
class ExtractionSpec(Generic[A, C]):
    """Everything the orchestrator needs to know about one artifact kind.

    Attributes:
        source_type: Key namespace, e.g. 'conversation', 'topic', 'document'.
        entity_kind: Name used in NotFoundError messages.
        schema: Pydantic model for one candidate in the LLM's array.
        load_existing: ``source_id -> stored artifacts`` for the key.
        delete_existing: ``source_id -> rows deleted``.
        load_entity: ``source_id -> entity`` or None when absent.
        build_context: ``entity -> context string`` for the LLM.
        build_artifacts: ``(candidates, source_id, created_at) -> artifacts``
            with fresh ids and no embeddings yet.
        embedding_text: ``artifact -> text`` that represents it in the index.
        persist: Writes all artifacts in one transaction.
    """

    source_type: str
    entity_kind: str
    schema: type[C]
    load_existing: Callable[[str], list[A]]
    delete_existing: Callable[[str], int]
    load_entity: Callable[[str], Any | None]
    build_context: Callable[[Any], str]
    build_artifacts: Callable[[list[C], str, str], list[A]]
    embedding_text: Callable[[A], str]
    persist: Callable[[list[A]], None]


class ExtractionOrchestrator:
    """Run extractions against one repository, LLM and embedder."""

    def __init__(self, llm: LLMClient, embedder: EmbeddingClient) -> None:
        self._llm = llm
        self._embedder = embedder

    async def extract(
        self,
        spec: ExtractionSpec[A, C],
        source_id: str,
        prompt: str,
        overwrite: bool = False,
    ) -> list[A]:
        """Extract artifacts for ``(spec.source_type, source_id)``.

        Returns:
            The stored artifacts for the key (existing or newly created).
            Empty when the model found nothing to extract.

        Raises:
            NotFoundError: If the source entity does not exist.
            ValidationError: If the model's output does not match the schema.
            TransientProviderError: If the LLM or embedder is unreachable
                after retries.
        """
        existing = spec.load_existing(source_id)
        if existing and not overwrite:
            logger.info(
                "Skipping %s %s: %d artifacts already extracted",
                spec.source_type, source_id, len(existing),
            )
            return existing
        if existing:
            deleted = spec.delete_existing(source_id)
            logger.info("Deleted %d artifacts for %s %s", deleted, spec.source_type, source_id)

        entity = spec.load_entity(source_id)
        if entity is None:
            raise NotFoundError(spec.entity_kind, source_id)
        context = spec.build_context(entity)

        result = await self._llm.generate(prompt, context, spec.schema)
        if isinstance(result, SchemaError):
            raise ValidationError(
                f"Model output for {spec.source_type} {source_id} does not match "
                f"{spec.schema.__name__}",
                details=result.details,
            )
        if isinstance(result, TransportError):
            raise TransientProviderError(result.details)
        if not isinstance(result, Ok):
            raise TypeError(f"Unexpected generation result: {type(result).__name__}")

        if not result.items:
            logger.info("Nothing extracted from %s %s", spec.source_type, source_id)
            return []

        artifacts = spec.build_artifacts(result.items, source_id, now_iso())
        vectors = await self._embedder.embed_batch([spec.embedding_text(a) for a in artifacts])
        for artifact, vector in zip(artifacts, vectors):
            artifact.embedding = vector

        spec.persist(artifacts)
        logger.info(
            "Extracted %d artifacts from %s %s", len(artifacts), spec.source_type, source_id
        )
        return artifacts
