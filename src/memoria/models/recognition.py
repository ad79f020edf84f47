"""
Recognition Data Models

Options and verdicts for ``recognize()``.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class RecognitionOptions(BaseModel):
    """
    Options for a single recognize() call.

    ``entities`` maps a dotted field path (``[]`` marks array expansion,
    e.g. ``"sessions[].title"``) to a semantic entity type tag.
    Bound ordering ``0 <= llm_lower_bound <= llm_upper_bound <= threshold <= 1``
    is checked by the engine; omitted bounds are derived from the threshold.
    """

    entities: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    threshold: float = 0.75
    llm_lower_bound: Optional[float] = None
    llm_upper_bound: Optional[float] = None
    limit: int = Field(default=50, gt=0)
    field_weights: Dict[str, float] = Field(
        default_factory=dict,
        description="Optional per-field weights for the confidence mean (default 1.0)",
    )
    tenant_id: str = "default"
    custom_prompt: Optional[str] = None
    goal: Optional[str] = Field(
        default=None,
        description="Caller goal appended to the disambiguation prompt as context",
    )

    @field_validator("field_weights")
    @classmethod
    def _non_negative_weights(cls, weights: Dict[str, float]) -> Dict[str, float]:
        negative = sorted(path for path, weight in weights.items() if weight < 0)
        if negative:
            raise ValueError(f"field weights must be >= 0: {', '.join(negative)}")
        return weights


class ScoredCandidate(BaseModel):
    """A stored record together with its deterministic confidence."""

    key: str
    data: Any
    confidence: float = Field(ge=0.0, le=1.0)
    field_scores: Dict[str, float] = Field(default_factory=dict)


class RecognitionResult(BaseModel):
    """Verdict of a recognize() call."""

    is_match: bool
    confidence: float = Field(ge=0.0, le=1.0)
    used_llm: bool = False
    matching_key: Optional[str] = None
    matching_data: Optional[Any] = None
    explanation: Optional[str] = None
