"""
Knowledge base similarity matching.

Matchers are selected by the similarity.type config key through an
explicit registry.
"""

import logging
from typing import Dict, Type

from helpdesk.exceptions.exceptions import ConfigurationError
from .base import MatchResult, NO_MATCH, SimilarityMatcher
from .cosine import CosineSimilarityMatcher, cosine_similarity, tokenize

logger = logging.getLogger(__name__)

MATCHER_CLASSES: Dict[str, Type[SimilarityMatcher]] = {
    "cosine": CosineSimilarityMatcher,
}


def create_matcher(matcher_type: str = "cosine") -> SimilarityMatcher:
    """
    Create a matcher by registry key.

    Raises:
        ConfigurationError: If the type is not registered
    """
    key = (matcher_type or "").strip().lower()
    matcher_class = MATCHER_CLASSES.get(key)
    if matcher_class is None:
        raise ConfigurationError(
            f"Unsupported similarity type: {matcher_type}. "
            f"Available: {', '.join(sorted(MATCHER_CLASSES))}"
        )
    logger.info(f"Using {matcher_class.__name__} for similarity type '{key}'")
    return matcher_class()


__all__ = [
    "MatchResult",
    "NO_MATCH",
    "SimilarityMatcher",
    "CosineSimilarityMatcher",
    "cosine_similarity",
    "tokenize",
    "MATCHER_CLASSES",
    "create_matcher",
]
