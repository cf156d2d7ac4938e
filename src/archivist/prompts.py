"""Prompt templates for extraction.

``PromptProvider.get(name)`` returns the text of the file configured under
``prompts.<name>`` in archivist.yaml, or the built-in default below. Prompts
are opaque strings to the rest of the system.
"""

from __future__ import annotations

from pathlib import Path

CONVERSATION_LEARNINGS = "conversation_learnings"
TOPIC_LEARNINGS = "topic_learnings"
TOPICS = "topics"

_BLOCK_GUIDE = """\
Each learning has:
1. title: specific and memorable, something you would recognise in a flashcard deck
2. problem_space: when or why you would need this; the situation that makes it relevant
3. insight: the core realization in 1-2 sentences
4. blocks: question/answer pairs (aim for 8-15), each with
   - block_type: 'qa' | 'why' | 'contrast'
   - question: front of the flashcard
   - answer: back of the flashcard

Block types:
- 'qa': definitions, procedures, proof outlines, formulas
- 'why': "Why is X true?", forcing deeper understanding
- 'contrast': "How does X differ from Y?", highlighting distinctions"""

DEFAULT_PROMPTS: dict[str, str] = {
    CONVERSATION_LEARNINGS: f"""\
Analyze this conversation and extract distilled learnings. Focus on technical
concepts or methods that were genuinely internalized (not just mentioned),
personal discoveries with specific reasoning, realizations that shifted
understanding, and approaches worth remembering.

Only include learnings where the conversation shows real engagement. Casual
mentions are not learnings.

{_BLOCK_GUIDE}

Return a JSON array of learnings. If there are no substantial learnings,
return an empty array.""",
    TOPIC_LEARNINGS: f"""\
You are extracting exam-prep flashcards from academic content.

Given a TOPIC with its summary and key points, create learnings.

{_BLOCK_GUIDE}

Return a JSON array of learnings. Be thorough: more blocks means better
flashcard coverage. If the topic has no substantial learning content, return
an empty array.""",
    TOPICS: """\
Extract the main topics from this document. For each topic:
- title: concise, descriptive name (max 100 chars)
- summary: 1-2 sentences on what the topic covers
- key_points: 3-5 items of important information
- source_text: the actual content from the document that covers the topic,
  verbatim or near-verbatim: formulas, definitions, theorems, proofs and
  explanations, not headings or outlines

By document type:
- slides: concepts taught, not administrative content
- papers: methodology, findings, contributions, key equations and results
- exercises: problem statements and solution approaches

Return 3-8 topics depending on document length. Add subtopics where concepts
are naturally nested. If the document has no substantial topics (a table of
contents only, for example), return an empty array.""",
}


class PromptProvider:
    """Resolve prompt names to text.

    Args:
        paths: ``{name: file path}`` overrides (from the ``prompts`` config
            section). Relative paths resolve against *base_dir*.
        base_dir: Directory for relative paths. Defaults to CWD.
    """

    def __init__(self, paths: dict[str, str] | None = None, base_dir: Path | None = None) -> None:
        self._paths = dict(paths or {})
        self._base_dir = base_dir if base_dir is not None else Path.cwd()

    def get(self, name: str) -> str:
        """Return the prompt text for *name*.

        Raises:
            KeyError: If *name* has neither an override nor a default.
            FileNotFoundError: If the configured file does not exist.
        """
        configured = self._paths.get(name)
        if configured:
            path = Path(configured).expanduser()
            if not path.is_absolute():
                path = self._base_dir / path
            if not path.exists():
                raise FileNotFoundError(f"Prompt file for '{name}' not found: {path}")
            return path.read_text(encoding="utf-8").strip()

        if name not in DEFAULT_PROMPTS:
            raise KeyError(f"Unknown prompt '{name}'")
        return DEFAULT_PROMPTS[name]
