"""Learning extraction from conversations and from document topics."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from archivist.db.models import ContentBlock, Learning, Source, Topic, Unit
from archivist.db.repository import Repository
from archivist.extract.orchestrator import ExtractionOrchestrator, ExtractionSpec
from archivist.extract.schemas import LearningCandidate
from archivist.prompts import CONVERSATION_LEARNINGS, TOPIC_LEARNINGS, PromptProvider


@dataclass
class _Conversation:
    source: Source
    units: list[Unit]


# ------------------------------------------------------------------
# Context and embedding text
# ------------------------------------------------------------------


def conversation_context(source: Source, units: list[Unit]) -> str:
    messages = "\n\n".join(f"[{u.role.upper()}]: {u.text}" for u in units)
    return f'Conversation: "{source.title}"\nDate: {source.created_at}\n\n{messages}'


def topic_context(topic: Topic) -> str:
    key_points = "\n".join(f"  {i}. {p}" for i, p in enumerate(topic.key_points, start=1))
    context = f"TOPIC: {topic.title}\n\nSUMMARY:\n{topic.summary}\n\nKEY POINTS:\n{key_points}"
    if topic.source_text:
        context += f"\n\nSOURCE TEXT:\n{topic.source_text}"
    return context


def learning_embedding_text(learning: Learning) -> str:
    """Title, problem space, insight and every Q/A pair, space-joined."""
    parts = [learning.title, learning.problem_space, learning.insight]
    parts.extend(f"Q: {b.question} A: {b.answer}" for b in learning.blocks)
    return " ".join(parts)


def _to_learnings(source_type: str):
    def build(candidates: list[LearningCandidate], source_id: str, created_at: str) -> list[Learning]:
        return [
            Learning(
                id=str(uuid.uuid4()),
                title=c.title,
                problem_space=c.problem_space,
                insight=c.insight,
                blocks=[ContentBlock(b.block_type, b.question, b.answer) for b in c.blocks],
                source_type=source_type,
                source_id=source_id,
                created_at=created_at,
            )
            for c in candidates
        ]

    return build


# ------------------------------------------------------------------
# Specs
# ------------------------------------------------------------------


def conversation_learning_spec(repo: Repository) -> ExtractionSpec[Learning, LearningCandidate]:
    def load(source_id: str) -> _Conversation | None:
        source = repo.get_source(source_id)
        if source is None or source.kind != "conversation":
            return None
        return _Conversation(source, repo.list_units(source_id))

    return ExtractionSpec(
        source_type="conversation",
        entity_kind="conversation",
        schema=LearningCandidate,
        load_existing=lambda sid: repo.get_learnings_by_source("conversation", sid),
        delete_existing=lambda sid: repo.delete_learnings_by_source("conversation", sid),
        load_entity=load,
        build_context=lambda conv: conversation_context(conv.source, conv.units),
        build_artifacts=_to_learnings("conversation"),
        embedding_text=learning_embedding_text,
        persist=repo.add_learnings,
    )


def topic_learning_spec(repo: Repository) -> ExtractionSpec[Learning, LearningCandidate]:
    return ExtractionSpec(
        source_type="topic",
        entity_kind="topic",
        schema=LearningCandidate,
        load_existing=lambda tid: repo.get_learnings_by_source("topic", tid),
        delete_existing=lambda tid: repo.delete_learnings_by_source("topic", tid),
        load_entity=repo.get_topic,
        build_context=topic_context,
        build_artifacts=_to_learnings("topic"),
        embedding_text=learning_embedding_text,
        persist=repo.add_learnings,
    )


class LearningExtractor:
    """Extract Learnings from conversations or from topics.

    Args:
        repo: Repository for loading entities and storing learnings.
        orchestrator: Shared extraction orchestrator (LLM + embedder).
        prompts: Resolves the extraction prompt templates.
    """

    def __init__(
        self,
        repo: Repository,
        orchestrator: ExtractionOrchestrator,
        prompts: PromptProvider | None = None,
    ) -> None:
        self._repo = repo
        self._orchestrator = orchestrator
        self._prompts = prompts or PromptProvider()
        self._conversation_spec = conversation_learning_spec(repo)
        self._topic_spec = topic_learning_spec(repo)

    async def extract_from_conversation(self, source_id: str, overwrite: bool = False) -> list[Learning]:
        return await self._orchestrator.extract(
            self._conversation_spec,
            source_id,
            self._prompts.get(CONVERSATION_LEARNINGS),
            overwrite=overwrite,
        )

    async def extract_from_topic(self, topic_id: str, overwrite: bool = False) -> list[Learning]:
        return await self._orchestrator.extract(
            self._topic_spec,
            topic_id,
            self._prompts.get(TOPIC_LEARNINGS),
            overwrite=overwrite,
        )
