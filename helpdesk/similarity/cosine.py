"""
Bag-of-words cosine similarity.

Texts are lowercased and tokenized on word boundaries; each text becomes a
word-frequency vector over the union vocabulary, and the score is the cosine
of the angle between the two vectors.
"""

import logging
import math
import re
from collections import Counter
from typing import Optional

import numpy as np

from helpdesk.config.constants import SIMILARITY_DEFAULTS
from helpdesk.similarity.base import SimilarityMatcher

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(SIMILARITY_DEFAULTS.TOKEN_PATTERN)


def tokenize(text: Optional[str]) -> Counter:
    """Word multiset of the lowercased text."""
    if not text:
        return Counter()
    return Counter(_TOKEN_RE.findall(text.lower()))


def cosine_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Cosine similarity of two texts' word-frequency vectors.

    Returns 0.0 for blank input or when the texts share no words.
    """
    words_a = tokenize(a)
    words_b = tokenize(b)
    if not words_a or not words_b or not (words_a.keys() & words_b.keys()):
        return 0.0

    vocabulary = sorted(words_a.keys() | words_b.keys())
    vec_a = np.array([words_a[w] for w in vocabulary], dtype=np.int64)
    vec_b = np.array([words_b[w] for w in vocabulary], dtype=np.int64)

    # Integer dot products keep identical texts at exactly 1.0
    dot = int(np.dot(vec_a, vec_b))
    norm_product = math.sqrt(int(np.dot(vec_a, vec_a)) * int(np.dot(vec_b, vec_b)))
    if norm_product == 0:
        return 0.0
    return min(1.0, max(0.0, dot / norm_product))


class CosineSimilarityMatcher(SimilarityMatcher):
    """Word-count cosine matcher (registry key "cosine")."""

    def compute(self, a: Optional[str], b: Optional[str]) -> float:
        return cosine_similarity(a, b)
