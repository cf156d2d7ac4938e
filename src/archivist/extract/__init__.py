"""Structured extraction: topics and learnings derived via the language model."""

from archivist.extract.batch import extract_many
from archivist.extract.learnings import LearningExtractor
from archivist.extract.orchestrator import ExtractionOrchestrator, ExtractionSpec
from archivist.extract.schemas import (
    BlockCandidate,
    LearningCandidate,
    SubtopicCandidate,
    TopicCandidate,
)
from archivist.extract.topics import TopicExtractor

__all__ = [
    "BlockCandidate",
    "ExtractionOrchestrator",
    "ExtractionSpec",
    "LearningCandidate",
    "LearningExtractor",
    "SubtopicCandidate",
    "TopicCandidate",
    "TopicExtractor",
    "extract_many",
]
