"""Domain models for the archive database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SOURCE_KINDS = ("conversation", "document")
UNIT_ROLES = ("human", "assistant", "page")
BLOCK_TYPES = ("qa", "why", "contrast")


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string (the stored timestamp format)."""
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: str | datetime) -> str:
    """Normalize a datetime or ISO string (``Z`` suffix allowed) to UTC ISO-8601."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str | datetime) -> datetime:
    """Parse a stored or user-supplied timestamp into an aware UTC datetime."""
    return datetime.fromisoformat(to_iso(value))


@dataclass
class Source:
    """A conversation or document: the top-level archived entity."""

    id: str
    kind: str
    title: str
    created_at: str
    updated_at: str
    summary: str | None = None
    platform: str = ""
    path: str | None = None
    unit_count: int = 0
    metadata: str = field(default_factory=lambda: "{}")

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata)


@dataclass
class Unit:
    """A message or page: an ordered child of a Source."""

    id: str
    source_id: str
    position: int
    role: str
    text: str
    created_at: str
    chunk_count: int = 1


@dataclass
class Chunk:
    unit_id: str
    chunk_index: int
    text: str
    char_count: int
    embedding: list[float] | None = None
    id: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class ContentBlock:
    """A single flashcard-ready question/answer pair inside a Learning."""

    block_type: str
    question: str
    answer: str

    def to_dict(self) -> dict[str, str]:
        return {"block_type": self.block_type, "question": self.question, "answer": self.answer}


@dataclass
class Learning:
    """A distilled learning derived from a conversation or a topic."""

    id: str
    title: str
    problem_space: str
    insight: str
    blocks: list[ContentBlock]
    source_type: str
    source_id: str
    created_at: str
    embedding: list[float] | None = None


@dataclass
class Topic:
    """A topic (or subtopic, depth 1) extracted from a document Source."""

    id: str
    document_id: str
    title: str
    summary: str
    key_points: list[str]
    created_at: str
    depth: int = 0
    parent_topic_id: str | None = None
    source_text: str | None = None
    embedding: list[float] | None = None


def blocks_to_json(blocks: list[ContentBlock]) -> str:
    return json.dumps([b.to_dict() for b in blocks])


def blocks_from_json(raw: str) -> list[ContentBlock]:
    items: list[dict[str, Any]] = json.loads(raw or "[]")
    return [
        ContentBlock(
            block_type=item.get("block_type", "qa"),
            question=item.get("question", ""),
            answer=item.get("answer", ""),
        )
        for item in items
    ]
