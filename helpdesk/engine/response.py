"""
Final answer record and its assembler.

A FinalAnswer is built exactly once per request, after routing, by
assemble_answer(); nothing mutates it afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from helpdesk.config.constants import (
    ACTION_NONE,
    ACTION_NOTIFY_HUMAN,
    SOURCE_KB,
    SOURCE_LLM,
    SOURCE_SYSTEM,
)


class AnswerSource(str, Enum):
    """Where the answer text came from."""
    KB = SOURCE_KB
    LLM = SOURCE_LLM
    SYSTEM = SOURCE_SYSTEM


class Action(str, Enum):
    """Follow-up the caller should take."""
    NONE = ACTION_NONE
    NOTIFY_HUMAN = ACTION_NOTIFY_HUMAN


@dataclass(frozen=True)
class FinalAnswer:
    """
    The answer returned to the user.

    escalate and action are derived separately and may disagree: action is
    fixed at KB lookup, escalate is decided by the path that produced the
    answer.
    """
    answer_text: str
    confidence: float
    escalate: bool
    source: AnswerSource
    action: Action
    elapsed_ms: int

    def to_dict(self) -> Dict[str, Any]:
        """Wire format used by the web and CLI hosts."""
        return {
            "answer": self.answer_text,
            "escalation": self.escalate,
            "confidence": self.confidence,
            "responseTimeMs": self.elapsed_ms,
            "source": self.source.value,
            "action": self.action.value,
        }


def assemble_answer(
    *,
    answer_text: str,
    confidence: float,
    escalate: bool,
    source: Union[AnswerSource, str],
    action: Union[Action, str],
    elapsed_ms: int,
) -> FinalAnswer:
    """
    Build the immutable FinalAnswer.

    Raises:
        ValueError: If confidence is outside [0, 1], elapsed_ms is negative,
            or source/action is not a known value
    """
    if confidence is None or not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be in [0, 1], got {confidence}")
    if elapsed_ms is None or elapsed_ms < 0:
        raise ValueError(f"elapsed_ms must be non-negative, got {elapsed_ms}")

    return FinalAnswer(
        answer_text=answer_text,
        confidence=float(confidence),
        escalate=bool(escalate),
        source=AnswerSource(source),
        action=Action(action),
        elapsed_ms=int(elapsed_ms),
    )
