"""Tests for the structured-output LLM client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel, TypeAdapter

from archivist.errors import TransientProviderError
from archivist.extract.schemas import LearningCandidate
from archivist.providers.llm import (
    LLMClient,
    Ok,
    SchemaError,
    TransportError,
    parse_items,
    validate_api_key,
)


class Item(BaseModel):
    name: str
    score: int


_ADAPTER = TypeAdapter(list[Item])


def _completion(content: str):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="GEMINI_API_KEY"):
        validate_api_key("gemini/gemini-2.5-flash-lite")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    validate_api_key("gemini/gemini-2.5-flash-lite")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama3")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("gpt-4o-mini")


# ------------------------------------------------------------------
# parse_items
# ------------------------------------------------------------------


def test_parse_bare_array():
    result = parse_items('[{"name": "a", "score": 1}]', _ADAPTER)
    assert isinstance(result, Ok)
    assert result.items == [Item(name="a", score=1)]


def test_parse_items_wrapper_object():
    result = parse_items('{"items": [{"name": "a", "score": 1}]}', _ADAPTER)
    assert isinstance(result, Ok)
    assert len(result.items) == 1


def test_parse_single_list_key_object():
    result = parse_items('{"learnings": [{"name": "a", "score": 1}]}', _ADAPTER)
    assert isinstance(result, Ok)


def test_parse_code_fenced_json():
    raw = '```json\n[{"name": "a", "score": 1}]\n```'
    assert isinstance(parse_items(raw, _ADAPTER), Ok)


def test_parse_empty_array_is_ok():
    result = parse_items('{"items": []}', _ADAPTER)
    assert isinstance(result, Ok)
    assert result.items == []


def test_parse_invalid_json_is_schema_error():
    result = parse_items("Sure! Here are your items.", _ADAPTER)
    assert isinstance(result, SchemaError)
    assert result.raw == "Sure! Here are your items."


def test_parse_object_without_array_is_schema_error():
    assert isinstance(parse_items('{"name": "a"}', _ADAPTER), SchemaError)


def test_parse_missing_field_is_schema_error():
    result = parse_items('[{"name": "a"}]', _ADAPTER)
    assert isinstance(result, SchemaError)
    assert "score" in result.details


def test_parse_accepts_camel_case_aliases():
    raw = json.dumps(
        [
            {
                "title": "T",
                "problemSpace": "P",
                "insight": "I",
                "blocks": [{"blockType": "why", "question": "Q", "answer": "A"}],
            }
        ]
    )
    result = parse_items(raw, TypeAdapter(list[LearningCandidate]))
    assert isinstance(result, Ok)
    assert result.items[0].problem_space == "P"
    assert result.items[0].blocks[0].block_type == "why"


def test_parse_rejects_unknown_block_type():
    raw = json.dumps(
        [{"title": "T", "problem_space": "P", "insight": "I",
          "blocks": [{"block_type": "essay", "question": "Q", "answer": "A"}]}]
    )
    assert isinstance(parse_items(raw, TypeAdapter(list[LearningCandidate])), SchemaError)


# ------------------------------------------------------------------
# generate
# ------------------------------------------------------------------


async def test_generate_returns_validated_items():
    client = LLMClient(model="gemini/m", temperature=0.2, max_tokens=500)
    mock = AsyncMock(return_value=_completion('{"items": [{"name": "x", "score": 3}]}'))
    with patch("archivist.providers.llm.litellm.acompletion", new=mock):
        result = await client.generate("Extract items.", "Some context", Item)

    assert isinstance(result, Ok)
    assert result.items[0].score == 3
    kwargs = mock.await_args.kwargs
    assert kwargs["model"] == "gemini/m"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 500
    assert kwargs["num_retries"] == 0
    assert kwargs["messages"][0] == {"role": "system", "content": "Extract items."}
    assert kwargs["messages"][1]["content"].startswith("Some context")
    assert '"score"' in kwargs["messages"][1]["content"]


async def test_generate_schema_mismatch():
    client = LLMClient()
    mock = AsyncMock(return_value=_completion('[{"name": "x"}]'))
    with patch("archivist.providers.llm.litellm.acompletion", new=mock):
        result = await client.generate("p", "c", Item)
    assert isinstance(result, SchemaError)


async def test_generate_transport_error_after_retries():
    client = LLMClient(max_attempts=2)
    mock = AsyncMock(side_effect=TransientProviderError("connection reset"))
    with (
        patch("archivist.providers.llm.litellm.acompletion", new=mock),
        patch("archivist.providers.retry.asyncio.sleep", new_callable=AsyncMock),
    ):
        result = await client.generate("p", "c", Item)
    assert isinstance(result, TransportError)
    assert "connection reset" in result.details
    assert mock.await_count == 2


async def test_generate_empty_content_is_schema_error():
    client = LLMClient()
    with patch("archivist.providers.llm.litellm.acompletion", new=AsyncMock(return_value=_completion(""))):
        result = await client.generate("p", "c", Item)
    assert isinstance(result, SchemaError)
