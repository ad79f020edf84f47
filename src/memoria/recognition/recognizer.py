"""
Recognition Engine

Decides whether a candidate record denotes an entity already in memory.

Deterministic confidence first, LLM second:
    c <  lower          -> no match
    lower <= c < upper  -> ask the LLM
    c >= upper          -> match

``upper`` defaults to the threshold, so by default the LLM band is
``[lower, threshold)``. Setting ``llm_upper_bound`` below the threshold
auto-matches scores in ``[upper, threshold)``.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from memoria.config import RecognitionConfig
from memoria.errors import ConfigurationError, LLMCallError, describe_error
from memoria.llm.base import LLMCaller
from memoria.llm.cancellation import CancellationToken, run_guarded
from memoria.models.recognition import RecognitionOptions, RecognitionResult, ScoredCandidate
from memoria.recognition.disambiguator import LLMDisambiguator
from memoria.recognition.field_paths import as_text, expand_values
from memoria.recognition.retriever import CandidateRetriever
from memoria.recognition.similarity import SimilarityScorer
from memoria.storage.base import RecordStore, StoredRecord

logger = logging.getLogger("memoria.recognition")

DEFAULT_LLM_MARGIN = 0.11


class Decision(str, Enum):
    """Confidence band."""
    NO_MATCH = "no_match"
    ASK_LLM = "ask_llm"
    MATCH = "match"


def resolve_bounds(
    threshold: float,
    llm_lower_bound: Optional[float] = None,
    llm_upper_bound: Optional[float] = None,
) -> Tuple[float, float]:
    """
    Fill in omitted bounds and check ``0 <= lower <= upper <= threshold <= 1``.

    Raises:
        ConfigurationError: if the ordering does not hold
    """
    upper = threshold if llm_upper_bound is None else llm_upper_bound
    lower = max(0.0, threshold - DEFAULT_LLM_MARGIN) if llm_lower_bound is None else llm_lower_bound
    lower = min(lower, upper) if llm_lower_bound is None else lower

    if not 0.0 <= lower <= upper <= threshold <= 1.0:
        raise ConfigurationError(
            "Invalid recognition bounds",
            errors=[
                f"expected 0 <= llm_lower_bound ({lower}) <= llm_upper_bound ({upper}) "
                f"<= threshold ({threshold}) <= 1"
            ],
        )
    return lower, upper


def classify_confidence(confidence: float, lower: float, upper: float) -> Decision:
    """Map a confidence onto exactly one band."""
    if confidence < lower:
        return Decision.NO_MATCH
    if confidence < upper:
        return Decision.ASK_LLM
    return Decision.MATCH


class ConfidenceScorer:
    """
    Deterministic per-field confidence.

    For every path in the entity map both records are expanded; the field
    score is the best pairwise similarity (array cross product). The
    record confidence is the weighted mean over fields both sides hold.
    """

    def __init__(self, scorer: SimilarityScorer):
        self.scorer = scorer

    def field_score(self, candidate: Any, existing: Any, path: str) -> Optional[float]:
        left = expand_values(candidate, path)
        right = expand_values(existing, path)
        if not left or not right:
            return None
        return max(
            self.scorer.compare(as_text(a), as_text(b))
            for a in left
            for b in right
        )

    def score(
        self,
        candidate: Any,
        record: StoredRecord,
        entities: Dict[str, str],
        weights: Optional[Dict[str, float]] = None,
    ) -> ScoredCandidate:
        weights = weights or {}
        field_scores: Dict[str, float] = {}
        total = 0.0
        weight_sum = 0.0

        for path in entities:
            score = self.field_score(candidate, record.value, path)
            if score is None:
                continue
            weight = weights.get(path, 1.0)
            field_scores[path] = score
            total += weight * score
            weight_sum += weight

        confidence = total / weight_sum if weight_sum > 0 else 0.0
        return ScoredCandidate(
            key=record.key,
            data=record.value,
            confidence=min(1.0, max(0.0, confidence)),
            field_scores=field_scores,
        )


class RecognitionEngine:
    """
    Orchestrates candidate retrieval, confidence scoring and LLM
    disambiguation into a RecognitionResult.
    """

    def __init__(
        self,
        store: RecordStore,
        llm: Optional[LLMCaller] = None,
        config: Optional[RecognitionConfig] = None,
        scorer: Optional[SimilarityScorer] = None,
        llm_timeout: Optional[float] = None,
        temperature: float = 0.1,
    ):
        self.config = config or RecognitionConfig()
        self.similarity = scorer or SimilarityScorer(
            threshold=self.config.similarity_threshold,
            method=self.config.similarity_method,
        )
        self.retriever = CandidateRetriever(store, self.similarity)
        self.confidence = ConfidenceScorer(self.similarity)
        self.disambiguator = LLMDisambiguator(llm, temperature) if llm else None
        self.llm_timeout = llm_timeout

    def default_options(self, **overrides: Any) -> RecognitionOptions:
        """Options pre-filled from configuration."""
        values = {
            "threshold": self.config.threshold,
            "llm_lower_bound": self.config.llm_lower_bound,
            "llm_upper_bound": self.config.llm_upper_bound,
            "limit": self.config.limit,
        }
        values.update(overrides)
        return RecognitionOptions(**values)

    async def score_candidates(
        self,
        candidate: Any,
        options: RecognitionOptions,
    ) -> List[ScoredCandidate]:
        """All retrieved candidates, best first."""
        records = await self.retriever.find_candidates(
            candidate,
            options.entities,
            options.tags,
            options.limit,
            options.tenant_id,
        )
        scored = [
            self.confidence.score(candidate, record, options.entities, options.field_weights)
            for record in records
        ]
        # Stable sort keeps retrieval order among equal confidences
        scored.sort(key=lambda s: s.confidence, reverse=True)
        return scored

    async def recognize(
        self,
        candidate: Any,
        options: Optional[RecognitionOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> RecognitionResult:
        """
        Recognize ``candidate`` against stored records.

        Raises:
            ConfigurationError: if the bounds are malformed
        """
        options = options or self.default_options()
        lower, upper = resolve_bounds(
            options.threshold, options.llm_lower_bound, options.llm_upper_bound
        )

        if not options.entities:
            return RecognitionResult(
                is_match=False,
                confidence=0.0,
                explanation="No entity fields given; nothing to compare",
            )

        scored = await self.score_candidates(candidate, options)
        if not scored:
            return RecognitionResult(
                is_match=False,
                confidence=0.0,
                explanation="No candidate records found",
            )

        best = scored[0]
        decision = classify_confidence(best.confidence, lower, upper)
        logger.info(
            f"Recognition best={best.key} confidence={best.confidence:.3f} "
            f"band={decision.value} (lower={lower:.2f}, upper={upper:.2f})"
        )

        if decision == Decision.MATCH:
            explanation = None
            if best.confidence < options.threshold:
                explanation = (
                    f"Confidence {best.confidence:.3f} is above llm_upper_bound {upper:.3f}; "
                    "matched without LLM"
                )
            return self._match(best, best.confidence, used_llm=False, explanation=explanation)

        if decision == Decision.NO_MATCH:
            return RecognitionResult(is_match=False, confidence=best.confidence)

        return await self._ask_llm(candidate, best, options, token)

    async def _ask_llm(
        self,
        candidate: Any,
        best: ScoredCandidate,
        options: RecognitionOptions,
        token: Optional[CancellationToken],
    ) -> RecognitionResult:
        if self.disambiguator is None:
            return RecognitionResult(
                is_match=False,
                confidence=best.confidence,
                explanation=(
                    f"Confidence {best.confidence:.3f} is uncertain but no LLM is configured; "
                    "treated as no match"
                ),
            )

        try:
            verdict = await run_guarded(
                self.disambiguator.disambiguate(
                    candidate,
                    best.data,
                    best.confidence,
                    custom_prompt=options.custom_prompt,
                    goal=options.goal,
                ),
                timeout=self.llm_timeout,
                token=token,
            )
        except Exception as e:
            logger.warning(
                f"LLM disambiguation failed for {best.key}: {e!r}",
                exc_info=not isinstance(e, LLMCallError),
            )
            return RecognitionResult(
                is_match=False,
                confidence=best.confidence,
                used_llm=True,
                explanation=(
                    f"LLM disambiguation failed ({describe_error(e)}); "
                    f"deterministic confidence {best.confidence:.3f} is below the match band"
                ),
            )

        if verdict.is_match:
            return self._match(best, verdict.confidence, used_llm=True, explanation=verdict.reasoning)
        return RecognitionResult(
            is_match=False,
            confidence=verdict.confidence,
            used_llm=True,
            explanation=verdict.reasoning,
        )

    @staticmethod
    def _match(
        best: ScoredCandidate,
        confidence: float,
        used_llm: bool,
        explanation: Optional[str],
    ) -> RecognitionResult:
        return RecognitionResult(
            is_match=True,
            confidence=confidence,
            used_llm=used_llm,
            matching_key=best.key,
            matching_data=best.data,
            explanation=explanation,
        )
