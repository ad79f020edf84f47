"""
Text Normalization

Canonicalizes free text for comparison and extracts the significant
terms used by the similarity scorer.
"""

import re
import unicodedata
from typing import Any, FrozenSet

STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "and", "for", "with", "not", "but", "nor", "yet",
    "from", "into", "onto", "over", "under", "about",
})

MIN_TERM_LENGTH = 3

_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def normalize(text: Any) -> str:
    """
    Lower-case, strip diacritics and punctuation, collapse whitespace.

    Non-string input is stringified; ``None`` becomes the empty string.
    The function is idempotent.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _PUNCTUATION.sub(" ", stripped).replace("_", " ")
    return _WHITESPACE.sub(" ", stripped).strip()


def extract_terms(text: Any) -> FrozenSet[str]:
    """Return the set of significant tokens of ``text``."""
    return frozenset(
        token
        for token in normalize(text).split(" ")
        if len(token) >= MIN_TERM_LENGTH and token not in STOP_WORDS
    )
