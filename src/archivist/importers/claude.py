"""Importer for the Claude ``conversations.json`` export."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from archivist.db.models import to_iso
from archivist.importers.base import ConversationImporter, RejectedSource, SourceRecord, UnitRecord

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_TEXT = "[No text content]"


class ClaudeImporter(ConversationImporter):
    """Normalize Claude conversations into conversation ``SourceRecord`` objects.

    Message text is flattened from the export's nested structure, in order:

    1. The ``text`` field, if non-blank.
    2. ``text`` items of the ``content`` array not already included.
    3. ``tool_result`` items with string content, as ``[Tool Output]: ...``.
    4. Attachments with extracted content, as ``[Attachment: name]\\n...``.

    A message with none of these becomes ``[No text content]``. Senders are
    passed through as roles, so an unexpected sender fails only its message
    at ingestion. A conversation missing its ``uuid`` or timestamps is yielded
    as a ``RejectedSource``.
    """

    platform = "claude"

    def read(self, path: Path) -> Iterator[SourceRecord | RejectedSource]:
        with open(path, encoding="utf-8") as fh:
            conversations = json.load(fh)
        if not isinstance(conversations, list):
            raise ValueError(f"{path}: expected a JSON array of conversations")

        logger.debug("Read %d conversations from %s", len(conversations), path)
        for index, conv in enumerate(conversations):
            try:
                record = self.normalize(conv)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                record = _rejected(conv, index, exc)
                logger.warning("Skipping conversation %s: %s", record.id, record.error)
            yield record

    def normalize(self, conv: dict[str, Any]) -> SourceRecord:
        """Convert one exported conversation.

        Raises:
            KeyError: If a required field (``uuid``, ``created_at``) is missing.
            ValueError: If a timestamp cannot be parsed.
        """
        units = [
            UnitRecord(
                id=msg["uuid"],
                position=index,
                role=normalize_sender(msg.get("sender", "")),
                text=flatten_content(msg),
                created_at=to_iso(msg["created_at"]),
                metadata={
                    "has_files": bool(msg.get("files")),
                    "has_attachments": bool(msg.get("attachments")),
                },
            )
            for index, msg in enumerate(conv.get("chat_messages") or [])
        ]
        return SourceRecord(
            id=conv["uuid"],
            kind="conversation",
            title=conv.get("name") or "",
            summary=conv.get("summary") or None,
            platform=self.platform,
            created_at=to_iso(conv["created_at"]),
            updated_at=to_iso(conv.get("updated_at") or conv["created_at"]),
            units=units,
        )


def normalize_sender(sender: str) -> str:
    return str(sender or "").strip().lower()


def _rejected(conv: Any, index: int, exc: Exception) -> RejectedSource:
    conv_id = conv.get("uuid") if isinstance(conv, dict) else None
    error = f"missing field {exc}" if isinstance(exc, KeyError) else str(exc)
    return RejectedSource(id=str(conv_id or f"conversation #{index}"), error=error)


def flatten_content(message: dict[str, Any]) -> str:
    parts: list[str] = []

    text = message.get("text") or ""
    if text.strip():
        parts.append(text)

    for item in message.get("content") or []:
        kind = item.get("type")
        if kind == "text":
            item_text = item.get("text") or ""
            if item_text.strip() and item_text not in parts:
                parts.append(item_text)
        elif kind == "tool_result" and isinstance(item.get("content"), str):
            parts.append(f"[Tool Output]: {item['content']}")

    for attachment in message.get("attachments") or []:
        extracted = attachment.get("extracted_content") or ""
        if extracted.strip():
            parts.append(f"[Attachment: {attachment.get('file_name', '')}]\n{extracted}")

    if not parts:
        return EMPTY_MESSAGE_TEXT
    return "\n\n".join(parts)
