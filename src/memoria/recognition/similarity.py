"""
Similarity Scorer

Bounded [0, 1] token-set similarity between two strings.

Two methods are available:
- ``overlap``: |A ∩ B| / min(|A|, |B|), so a short form fully contained in a
  longer one ("Pršu iela 13B" vs "Pršu ielā 13b, Rīgā!") scores 1.0
- ``jaccard``: |A ∩ B| / |A ∪ B|

Both are symmetric and return 0.0 when either term set is empty.
"""

from typing import AbstractSet, Any

from memoria.recognition.text import extract_terms, normalize

METHODS = ("overlap", "jaccard")


class SimilarityScorer:
    """Deterministic text similarity used by recognition and recall."""

    def __init__(self, threshold: float = 0.5, method: str = "overlap"):
        if method not in METHODS:
            raise ValueError(f"Unknown similarity method: {method}")
        self.threshold = threshold
        self.method = method

    def score_terms(self, a: AbstractSet[str], b: AbstractSet[str]) -> float:
        if not a or not b:
            return 0.0
        shared = len(a & b)
        if self.method == "jaccard":
            return shared / len(a | b)
        return shared / min(len(a), len(b))

    def score(self, a: Any, b: Any) -> float:
        """Similarity of two texts from their extracted terms."""
        return self.score_terms(extract_terms(a), extract_terms(b))

    def compare(self, a: Any, b: Any) -> float:
        """
        Field-level comparison.

        Non-empty values that normalize to the same string score 1.0
        even when they carry no significant terms (e.g. "AI", "42").
        """
        left, right = normalize(a), normalize(b)
        if left and left == right:
            return 1.0
        return self.score_terms(extract_terms(left), extract_terms(right))

    def are_similar(self, a: Any, b: Any) -> bool:
        return self.score(a, b) >= self.threshold
