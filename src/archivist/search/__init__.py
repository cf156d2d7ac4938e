"""Archivist search: exact vector index, context enrichment, semantic search."""

from archivist.search.context import ContextEnricher, SearchResult, SourceInfo
from archivist.search.learnings import LearningSearch, LearningSearchResult, TopicSearchResult
from archivist.search.semantic import SearchFilters, SemanticSearch
from archivist.search.vector_index import VectorHit, VectorIndex, cosine_similarity

__all__ = [
    "ContextEnricher",
    "LearningSearch",
    "LearningSearchResult",
    "SearchFilters",
    "SearchResult",
    "SemanticSearch",
    "SourceInfo",
    "TopicSearchResult",
    "VectorHit",
    "VectorIndex",
    "cosine_similarity",
]
