"""Archivist ingest pipeline: chunker and ingestion coordinator."""

from archivist.ingest.chunking import Chunker, TextChunk, chunk_text, estimate_chunk_count
from archivist.ingest.coordinator import IngestionCoordinator, IngestReport, UnitState

__all__ = [
    "Chunker",
    "IngestReport",
    "IngestionCoordinator",
    "TextChunk",
    "UnitState",
    "chunk_text",
    "estimate_chunk_count",
]
