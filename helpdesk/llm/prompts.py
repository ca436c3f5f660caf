"""
Prompt construction for helpdesk questions.

The configured template is filled with three named placeholders:

    {preamble}  - the llm.prompts.preamble text
    {examples}  - KB examples, one "- question -> answer" line each
    {question}  - the user's question

Templates written with three positional %s slots (preamble, examples,
question) are also accepted. Without a usable template the bare question
is sent.
"""

import logging
from typing import Iterable, Optional

from helpdesk.config.constants import ENGINE_DEFAULTS
from helpdesk.knowledge.models import KnowledgeEntry

logger = logging.getLogger(__name__)


class PromptBuilder:
    """Fills the prompt template with preamble, KB examples and the question."""

    def __init__(self, preamble: Optional[str] = None, template: Optional[str] = None,
                 max_examples: int = ENGINE_DEFAULTS.MAX_PROMPT_EXAMPLES):
        self.preamble = preamble or ""
        self.template = template
        self.max_examples = max_examples

    @classmethod
    def from_settings(cls, prompts) -> "PromptBuilder":
        """Create from the llm.prompts section."""
        return cls(preamble=prompts.preamble, template=prompts.template)

    def format_examples(self, examples: Iterable[KnowledgeEntry]) -> str:
        lines = []
        for entry in examples:
            if len(lines) >= self.max_examples:
                break
            lines.append(f"- {entry.question} -> {entry.answer}")
        return "\n".join(lines)

    def build(self, question: str, examples: Iterable[KnowledgeEntry] = ()) -> str:
        """
        Build the prompt text.

        Args:
            question: The user's question
            examples: KB entries shown to the model as examples

        Returns:
            Filled template, or the bare question if there is no template or
            it cannot be formatted
        """
        if not self.template:
            return question

        examples_text = self.format_examples(examples)
        try:
            if "{" not in self.template and "%s" in self.template:
                return self.template % (self.preamble, examples_text, question)
            return self.template.format(
                preamble=self.preamble,
                examples=examples_text,
                question=question,
            )
        except (KeyError, IndexError, ValueError, TypeError) as e:
            logger.warning(f"Error formatting prompt template, falling back to bare question: {e!r}")
            return question
