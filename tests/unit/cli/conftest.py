"""Fixtures for CLI tests: an isolated project directory and a fake provider."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

_AXES = ("python", "cook", "music")


def keyword_vector(text: str) -> list[float]:
    lower = text.lower()
    return [float(lower.count(word)) for word in _AXES] + [0.1]


@pytest.fixture
def project(tmp_path, monkeypatch) -> Path:
    """CWD with an archivist.yaml (4-dim embeddings), a DB path and an API key."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("ARCHIVIST_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("ARCHIVIST_LLM_MODEL", raising=False)
    monkeypatch.setenv("ARCHIVIST_DB_PATH", str(tmp_path / "archive.db"))
    monkeypatch.setattr("archivist.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    (tmp_path / "archivist.yaml").write_text(
        yaml.dump({"embedding": {"model": "gemini/text-embedding-004", "dimensions": 4}}),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def fake_embeddings():
    """Patch litellm.aembedding with keyword vectors; yields the list of embedded texts."""
    texts: list[str] = []

    async def aembedding(model, input, **kwargs):
        texts.append(input[0])
        response = MagicMock()
        response.data = [{"embedding": keyword_vector(input[0])}]
        return response

    with patch("archivist.providers.embeddings.litellm.aembedding", new=aembedding):
        yield texts


@pytest.fixture
def export_file(project) -> Path:
    """A two-conversation Claude export in the project directory."""
    def message(uuid, sender, text):
        return {"uuid": uuid, "sender": sender, "text": text, "created_at": "2024-05-01T12:00:00Z"}

    conversations = [
        {
            "uuid": "conv-py",
            "name": "Learning python",
            "created_at": "2024-05-01T12:00:00Z",
            "updated_at": "2024-05-01T12:30:00Z",
            "chat_messages": [
                message("py-0", "human", "How do python generators work?"),
                message("py-1", "assistant", "A python generator yields values lazily."),
            ],
        },
        {
            "uuid": "conv-food",
            "name": "Dinner",
            "created_at": "2024-06-01T18:00:00Z",
            "updated_at": "2024-06-01T18:10:00Z",
            "chat_messages": [message("food-0", "human", "How long to cook rice?")],
        },
    ]
    path = project / "conversations.json"
    path.write_text(json.dumps(conversations), encoding="utf-8")
    return path


class FakeCompletion:
    """Stand-in for litellm.acompletion; returns ``content`` and records prompts."""

    def __init__(self) -> None:
        self.content = "[]"
        self.calls: list[list[dict]] = []

    async def __call__(self, model, messages, **kwargs):
        self.calls.append(messages)
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = self.content
        return response


@pytest.fixture
def fake_llm():
    completion = FakeCompletion()
    with patch("archivist.providers.llm.litellm.acompletion", new=completion):
        yield completion
