"""
Similarity matcher interface.

A matcher scores a question against knowledge base entries and reports the
single best match, plus an optional top-K listing used for prompt examples.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from helpdesk.knowledge.models import KnowledgeEntry


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of a KB lookup.

    best_entry is None when nothing reached the threshold; best_score is
    the highest score seen regardless.
    """
    best_entry: Optional[KnowledgeEntry]
    best_score: float
    should_invoke_llm: bool


NO_MATCH = MatchResult(best_entry=None, best_score=0.0, should_invoke_llm=True)


class SimilarityMatcher(ABC):
    """Abstract base class for knowledge base matchers."""

    @abstractmethod
    def compute(self, a: Optional[str], b: Optional[str]) -> float:
        """
        Similarity of two texts in [0, 1].

        Must be symmetric and return 0.0 for blank input.
        """
        pass

    def find_best_match(self, question: Optional[str], entries: Sequence[KnowledgeEntry],
                        threshold: float) -> MatchResult:
        """
        Single pass over entries keeping the highest score.

        Ties keep the earliest entry. The entry is only reported when its
        score reaches threshold.
        """
        if not question or not question.strip() or not entries:
            return NO_MATCH

        best_entry = None
        best_score = 0.0
        for entry in entries:
            score = self.compute(question, entry.question)
            if score > best_score:
                best_score = score
                best_entry = entry

        should_invoke_llm = best_score < threshold
        return MatchResult(
            best_entry=None if should_invoke_llm else best_entry,
            best_score=best_score,
            should_invoke_llm=should_invoke_llm,
        )

    def top_k(self, question: Optional[str], entries: Sequence[KnowledgeEntry],
              k: int) -> List[KnowledgeEntry]:
        """The k highest-scoring entries, best first; ties keep KB order."""
        if not question or not question.strip() or not entries or k <= 0:
            return []

        scored = [(self.compute(question, entry.question), entry) for entry in entries]
        # sorted() is stable, so equal scores keep snapshot order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in scored[:k]]
