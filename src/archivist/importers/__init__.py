"""Importers: platform exports and documents normalized into SourceRecords."""

from archivist.importers.base import ConversationImporter, RejectedSource, SourceRecord, SourceStream, UnitRecord
from archivist.importers.claude import ClaudeImporter
from archivist.importers.documents import find_documents, parse_document

IMPORTERS: dict[str, type[ConversationImporter]] = {
    ClaudeImporter.platform: ClaudeImporter,
}


def get_importer(platform: str) -> ConversationImporter:
    """Return an importer for *platform*. Raises ValueError if unsupported."""
    try:
        return IMPORTERS[platform]()
    except KeyError:
        raise ValueError(
            f"Unsupported platform '{platform}'. Supported: {', '.join(sorted(IMPORTERS))}"
        ) from None


__all__ = [
    "ClaudeImporter",
    "ConversationImporter",
    "IMPORTERS",
    "RejectedSource",
    "SourceRecord",
    "SourceStream",
    "UnitRecord",
    "find_documents",
    "get_importer",
    "parse_document",
]
