"""Recognition: normalization, similarity, field paths and the recognition engine."""

from memoria.recognition.field_paths import (
    MISSING,
    all_field_paths,
    expand_values,
    get_value,
    set_value,
)
from memoria.recognition.recognizer import (
    ConfidenceScorer,
    Decision,
    RecognitionEngine,
    classify_confidence,
    resolve_bounds,
)
from memoria.recognition.similarity import SimilarityScorer
from memoria.recognition.text import extract_terms, normalize

__all__ = [
    "MISSING",
    "ConfidenceScorer",
    "Decision",
    "RecognitionEngine",
    "SimilarityScorer",
    "all_field_paths",
    "classify_confidence",
    "expand_values",
    "extract_terms",
    "get_value",
    "normalize",
    "resolve_bounds",
    "set_value",
]
