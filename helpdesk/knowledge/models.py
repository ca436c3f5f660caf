"""Knowledge base data model."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class KnowledgeEntry:
    """One curated question/answer pair; escalate marks answers that need a human."""
    id: int
    question: str
    answer: str
    escalate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "escalation": self.escalate,
        }
