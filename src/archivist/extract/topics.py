"""Topic extraction from document Sources.

The model returns main topics, each optionally with subtopics. Both are
stored in the topics table: main topics at depth 0, subtopics at depth 1
pointing at their parent. One embedding per stored topic.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from archivist.db.models import Chunk, Source, Topic, Unit
from archivist.db.repository import Repository
from archivist.errors import NotFoundError
from archivist.extract.orchestrator import ExtractionOrchestrator, ExtractionSpec
from archivist.extract.schemas import TopicCandidate
from archivist.prompts import TOPICS, PromptProvider


@dataclass
class _Document:
    source: Source
    chunks: list[tuple[Unit, Chunk]]


def document_context(source: Source, chunks: list[tuple[Unit, Chunk]]) -> str:
    """Render a document for the model: header, then every chunk with its page.

    Raises:
        NotFoundError: If the document has no chunks.
    """
    if not chunks:
        raise NotFoundError("chunks for document", source.id)

    metadata = source.metadata_dict
    body = "\n\n---\n\n".join(
        f"[Chunk {i} (Page {unit.position + 1})]\n{chunk.text}"
        for i, (unit, chunk) in enumerate(chunks, start=1)
    )
    return (
        f'Document: "{source.title}"\n'
        f"Type: {metadata.get('document_type', 'unknown')}\n"
        f"Pages: {metadata.get('page_count', source.unit_count)}\n\n"
        f"Content:\n{body}"
    )


def topic_embedding_text(topic: Topic) -> str:
    return f"{topic.title} {topic.summary} {' '.join(topic.key_points)}"


def build_topics(candidates: list[TopicCandidate], document_id: str, created_at: str) -> list[Topic]:
    """Flatten candidates into Topic rows; each parent precedes its subtopics."""
    topics: list[Topic] = []
    for candidate in candidates:
        parent = Topic(
            id=str(uuid.uuid4()),
            document_id=document_id,
            title=candidate.title,
            summary=candidate.summary,
            key_points=list(candidate.key_points),
            source_text=candidate.source_text,
            created_at=created_at,
        )
        topics.append(parent)
        for sub in candidate.subtopics or []:
            topics.append(
                Topic(
                    id=str(uuid.uuid4()),
                    document_id=document_id,
                    title=sub.title,
                    summary=sub.summary,
                    key_points=list(sub.key_points),
                    source_text=sub.source_text,
                    created_at=created_at,
                    depth=1,
                    parent_topic_id=parent.id,
                )
            )
    return topics


def document_topic_spec(repo: Repository) -> ExtractionSpec[Topic, TopicCandidate]:
    def load(document_id: str) -> _Document | None:
        source = repo.get_source(document_id)
        if source is None or source.kind != "document":
            return None
        return _Document(source, repo.list_source_chunks(document_id))

    return ExtractionSpec(
        source_type="document",
        entity_kind="document",
        schema=TopicCandidate,
        load_existing=repo.list_topics,
        delete_existing=repo.delete_topics_by_document,
        load_entity=load,
        build_context=lambda doc: document_context(doc.source, doc.chunks),
        build_artifacts=build_topics,
        embedding_text=topic_embedding_text,
        persist=repo.add_topics,
    )


class TopicExtractor:
    """Extract Topics (with subtopics) from an ingested document."""

    def __init__(
        self,
        repo: Repository,
        orchestrator: ExtractionOrchestrator,
        prompts: PromptProvider | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts or PromptProvider()
        self._spec = document_topic_spec(repo)

    async def extract_from_document(self, document_id: str, overwrite: bool = False) -> list[Topic]:
        return await self._orchestrator.extract(
            self._spec,
            document_id,
            self._prompts.get(TOPICS),
            overwrite=overwrite,
        )
