"""Document parser: PDFs (page by page, via pypdf) and plain text / Markdown.

Each document becomes a ``document`` SourceRecord whose units are its pages.
Ids are derived from the resolved file path, so parsing the same file twice
yields the same Source and Unit ids and re-ingestion is a no-op.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

import pypdf

from archivist.db.models import now_iso
from archivist.importers.base import SourceRecord, UnitRecord

SUPPORTED_SUFFIXES = frozenset({".pdf", ".txt", ".md"})
DOCUMENT_TYPES = ("slides", "paper", "exercises", "other")


def document_source_id(path: Path | str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, Path(path).resolve().as_uri()))


def page_unit_id(source_id: str, position: int) -> str:
    return str(uuid.uuid5(uuid.UUID(source_id), str(position)))


def detect_document_type(path: Path | str) -> str:
    """Guess the document type from its file name."""
    lower = str(path).lower()
    if any(word in lower for word in ("exercise", "midterm", "final", "exam")):
        return "exercises"
    if "solution" in lower:
        return "other"
    if "paper" in lower or "article" in lower:
        return "paper"
    return "slides"


def find_documents(path: Path | str, recursive: bool = False) -> list[Path]:
    """Return supported files at *path* (a file or a directory), sorted."""
    root = Path(path)
    if root.is_file():
        return [root] if root.suffix.lower() in SUPPORTED_SUFFIXES else []
    pattern = "**/*" if recursive else "*"
    return sorted(
        p for p in root.glob(pattern)
        if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
    )


def parse_document(
    path: Path | str,
    doc_type: str | None = None,
    title: str | None = None,
) -> SourceRecord:
    """Parse the file at *path* into a document SourceRecord.

    Args:
        path: A .pdf, .txt or .md file.
        doc_type: One of DOCUMENT_TYPES; detected from the file name if omitted.
        title: Display title; defaults to the PDF's metadata title, then the
            file name.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file type or *doc_type* is unsupported.
    """
    file_path = Path(path).resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Document not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported document type '{suffix}' for {file_path}")

    resolved_type = doc_type or detect_document_type(file_path.name)
    if resolved_type not in DOCUMENT_TYPES:
        raise ValueError(
            f"Unknown document type '{resolved_type}'. Choose one of: {', '.join(DOCUMENT_TYPES)}"
        )

    if suffix == ".pdf":
        pages, meta_title = _read_pdf(file_path)
    else:
        pages, meta_title = [file_path.read_text(encoding="utf-8")], None

    source_id = document_source_id(file_path)
    created = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc).isoformat()
    ingested = now_iso()

    units = [
        UnitRecord(
            id=page_unit_id(source_id, position),
            position=position,
            role="page",
            text=text.strip(),
            created_at=ingested,
        )
        for position, text in enumerate(pages)
    ]

    return SourceRecord(
        id=source_id,
        kind="document",
        title=title or meta_title or file_path.name,
        created_at=created,
        updated_at=ingested,
        units=units,
        platform="pdf" if suffix == ".pdf" else "text",
        path=str(file_path),
        metadata={
            "filename": file_path.name,
            "document_type": resolved_type,
            "page_count": len(pages),
            "char_count": sum(len(p) for p in pages),
        },
    )


def _read_pdf(path: Path) -> tuple[list[str], str | None]:
    """Return per-page text (blank for image-only pages) and the metadata title."""
    reader = pypdf.PdfReader(str(path))
    pages = [page.extract_text() or "" for page in reader.pages]
    meta_title = None
    if reader.metadata is not None and reader.metadata.title:
        meta_title = str(reader.metadata.title).strip() or None
    return pages, meta_title
