"""Pydantic schemas for structured extraction output.

The language model returns a JSON array of these candidates; anything that
does not validate is a schema error for the whole call.
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field


class BlockCandidate(BaseModel):
    """A single question/answer pair that becomes a flashcard."""

    block_type: Literal["qa", "why", "contrast"] = Field(
        validation_alias=AliasChoices("block_type", "blockType"),
        description=(
            "'qa' for a generic question, 'why' for elaborative interrogation, "
            "'contrast' for comparisons"
        ),
    )
    question: str = Field(description="Front of the flashcard: the question to test")
    answer: str = Field(description="Back of the flashcard: the answer to reveal")


class LearningCandidate(BaseModel):
    title: str = Field(description="Descriptive, memorable and specific title")
    problem_space: str = Field(
        validation_alias=AliasChoices("problem_space", "problemSpace"),
        description="When or why you would need this knowledge",
    )
    insight: str = Field(description="The core realization in 1-2 sentences")
    blocks: list[BlockCandidate] = Field(
        description="Question/answer pairs (aim for 8-15): definitions, why questions, contrasts"
    )


class SubtopicCandidate(BaseModel):
    title: str = Field(description="Concise title for the subtopic (max 100 chars)")
    summary: str = Field(description="1-2 sentences on what the subtopic covers")
    key_points: list[str] = Field(description="2-4 key points from the subtopic")
    source_text: str | None = Field(
        default=None,
        description="Relevant source text: actual content, formulas, definitions",
    )


class TopicCandidate(BaseModel):
    title: str = Field(description="Concise title for the topic (max 100 chars)")
    summary: str = Field(description="1-2 sentences on what the topic covers")
    key_points: list[str] = Field(description="3-5 key points about the topic")
    source_text: str | None = Field(
        default=None,
        description=(
            "Relevant source text from the document: definitions, theorems and "
            "explanations, not just headings"
        ),
    )
    subtopics: list[SubtopicCandidate] | None = Field(
        default=None,
        description="Subtopics within this topic, if naturally present",
    )
