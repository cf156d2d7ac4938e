"""Tests for PromptProvider."""

from __future__ import annotations

import pytest

from archivist.prompts import (
    CONVERSATION_LEARNINGS,
    DEFAULT_PROMPTS,
    TOPIC_LEARNINGS,
    TOPICS,
    PromptProvider,
)


def test_defaults_cover_every_extraction():
    provider = PromptProvider()
    for name in (CONVERSATION_LEARNINGS, TOPIC_LEARNINGS, TOPICS):
        assert provider.get(name) == DEFAULT_PROMPTS[name]
        assert provider.get(name).strip()


def test_relative_override_resolves_against_base_dir(tmp_path):
    (tmp_path / "prompts").mkdir()
    (tmp_path / "prompts" / "topics.txt").write_text("  Find topics.  \n", encoding="utf-8")
    provider = PromptProvider({TOPICS: "prompts/topics.txt"}, base_dir=tmp_path)
    assert provider.get(TOPICS) == "Find topics."
    assert provider.get(CONVERSATION_LEARNINGS) == DEFAULT_PROMPTS[CONVERSATION_LEARNINGS]


def test_missing_override_file(tmp_path):
    provider = PromptProvider({TOPICS: "nope.txt"}, base_dir=tmp_path)
    with pytest.raises(FileNotFoundError):
        provider.get(TOPICS)


def test_unknown_prompt_name():
    with pytest.raises(KeyError):
        PromptProvider().get("poetry")
