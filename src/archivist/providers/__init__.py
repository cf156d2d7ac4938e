"""Embedding and language-model providers (LiteLLM)."""

from archivist.providers.embeddings import EmbeddingClient
from archivist.providers.llm import (
    GenerationResult,
    LLMClient,
    Ok,
    SchemaError,
    TransportError,
    validate_api_key,
)
from archivist.providers.retry import retry_async

__all__ = [
    "EmbeddingClient",
    "LLMClient",
    "GenerationResult",
    "Ok",
    "SchemaError",
    "TransportError",
    "retry_async",
    "validate_api_key",
]
