"""Structured-output language-model client over LiteLLM.

``LLMClient.generate`` asks for a JSON array of objects matching a pydantic
model and reports the outcome as a tagged result:

- ``Ok(items)``            validated model instances (possibly empty)
- ``SchemaError(details)`` the response was not valid JSON or did not match
- ``TransportError(details)`` the provider could not be reached after retries

Callers decide what each variant means; the client never raises for them.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

import litellm
import pydantic
from pydantic import BaseModel, TypeAdapter

from archivist.errors import TransientProviderError
from archivist.providers.retry import DEFAULT_MAX_ATTEMPTS, retry_async

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

DEFAULT_LLM_MODEL = "gemini/gemini-2.5-flash-lite"

M = TypeVar("M", bound=BaseModel)


# ------------------------------------------------------------------
# Result variants
# ------------------------------------------------------------------


@dataclass
class Ok(Generic[M]):
    items: list[M] = field(default_factory=list)


@dataclass
class SchemaError:
    details: str
    raw: str = ""


@dataclass
class TransportError:
    details: str


GenerationResult = Union[Ok, SchemaError, TransportError]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------

_FORMAT_INSTRUCTIONS = """\
Respond with a JSON object of the form {{"items": [...]}} where every element \
of "items" matches this JSON schema:

{schema}

Return {{"items": []}} if nothing in the content qualifies."""


class LLMClient:
    """Language-model handle used by the extraction layer."""

    def __init__(
        self,
        model: str = DEFAULT_LLM_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts

    async def generate(self, prompt: str, context: str, schema: type[M]) -> GenerationResult:
        """Request a list of *schema* objects for *context* under *prompt*.

        Non-transient provider errors (bad request, authentication) propagate.
        """
        adapter = TypeAdapter(list[schema])
        messages = [
            {"role": "system", "content": prompt},
            {
                "role": "user",
                "content": context
                + "\n\n"
                + _FORMAT_INSTRUCTIONS.format(schema=json.dumps(schema.model_json_schema())),
            },
        ]

        try:
            raw = await retry_async(
                lambda: self._call(messages),
                max_attempts=self.max_attempts,
                description=f"Generation with {self.model}",
            )
        except TransientProviderError as exc:
            return TransportError(str(exc))

        return parse_items(raw, adapter)

    async def _call(self, messages: list[dict]) -> str:
        response = await litellm.acompletion(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
            num_retries=0,
        )
        return response.choices[0].message.content or ""


def parse_items(raw: str, adapter: TypeAdapter[list[Any]]) -> GenerationResult:
    """Decode and validate a model response.

    Accepts a bare JSON array or an object wrapping one (``{"items": [...]}``
    or any single list-valued key).
    """
    text = _strip_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        return SchemaError(f"Response is not valid JSON: {exc}", raw=raw)

    if isinstance(data, dict):
        data = _unwrap(data)
        if data is None:
            return SchemaError("Response object does not contain an array", raw=raw)

    try:
        return Ok(adapter.validate_python(data))
    except pydantic.ValidationError as exc:
        logger.debug("Schema validation failed: %s", exc)
        return SchemaError(str(exc), raw=raw)


def _unwrap(data: dict) -> list | None:
    if isinstance(data.get("items"), list):
        return data["items"]
    lists = [v for v in data.values() if isinstance(v, list)]
    return lists[0] if len(lists) == 1 else None


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
