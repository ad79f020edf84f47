"""
Unit Tests for the Recognition Engine

Uses the in-memory store and a mocked LLM caller. Does not require an
OpenAI API key.
"""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from memoria.errors import ConfigurationError, LLMCallError
from memoria.llm.base import LLMResponse
from memoria.llm.cancellation import CancellationToken
from memoria.models.recognition import RecognitionOptions
from memoria.recognition.recognizer import (
    ConfidenceScorer,
    Decision,
    RecognitionEngine,
    classify_confidence,
    resolve_bounds,
)
from memoria.recognition.retriever import CandidateRetriever
from memoria.recognition.similarity import SimilarityScorer
from memoria.storage.base import Scope
from memoria.storage.memory_store import InMemoryRecordStore

# title scores 1.0 and venue 2/5 = 0.4, so the mean confidence is 0.70
STORED_EVENT = {
    "title": "AI Summit 2024",
    "venue": "Hanzas Perons Old Town Tallinn Estonia Baltic",
}
CANDIDATE_EVENT = {
    "title": "AI Summit 2024",
    "venue": "Hanzas Perons Center Riga Latvia",
}
ENTITIES = {"title": "event", "venue": "location"}


def verdict(is_match: bool, confidence: float, reasoning: str = "same event"):
    return [LLMResponse(content=json.dumps({
        "isMatch": is_match,
        "confidence": confidence,
        "reasoning": reasoning,
    }))]


class TestBounds:
    """Tests for band resolution and classification."""

    def test_defaults_derive_from_threshold(self):
        """Test lower = threshold - 0.11 and upper = threshold."""
        lower, upper = resolve_bounds(0.75)
        assert lower == pytest.approx(0.64)
        assert upper == 0.75

    def test_low_threshold_clamps_lower_at_zero(self):
        """Test that the derived lower bound never goes negative."""
        assert resolve_bounds(0.05) == (0.0, 0.05)

    def test_derived_lower_never_exceeds_upper(self):
        """Test that an explicit low upper bound pulls the derived lower down."""
        lower, upper = resolve_bounds(0.75, llm_upper_bound=0.5)
        assert lower == 0.5
        assert upper == 0.5

    @pytest.mark.parametrize("lower,upper,threshold", [
        (0.8, None, 0.75),
        (0.6, 0.5, 0.75),
        (0.6, 0.9, 0.75),
        (-0.1, None, 0.75),
    ])
    def test_malformed_ordering_rejected(self, lower, upper, threshold):
        """Test that 0 <= lower <= upper <= threshold <= 1 is enforced."""
        with pytest.raises(ConfigurationError):
            resolve_bounds(threshold, lower, upper)

    def test_bands_partition_the_unit_interval(self):
        """Test that every confidence falls into exactly one band."""
        lower, upper = 0.6, 0.75
        assert classify_confidence(0.0, lower, upper) == Decision.NO_MATCH
        assert classify_confidence(0.5999, lower, upper) == Decision.NO_MATCH
        assert classify_confidence(0.6, lower, upper) == Decision.ASK_LLM
        assert classify_confidence(0.7499, lower, upper) == Decision.ASK_LLM
        assert classify_confidence(0.75, lower, upper) == Decision.MATCH
        assert classify_confidence(1.0, lower, upper) == Decision.MATCH

    def test_empty_llm_band(self):
        """Test that lower == upper leaves no LLM band."""
        assert classify_confidence(0.7, 0.7, 0.7) == Decision.MATCH
        assert classify_confidence(0.69, 0.7, 0.7) == Decision.NO_MATCH


class TestConfidenceScorer:
    """Tests for field-level confidence."""

    @pytest.fixture
    def scorer(self):
        return ConfidenceScorer(SimilarityScorer())

    def test_array_cross_product_takes_best_pair(self, scorer):
        """Test that titles[] compares every candidate title with the stored one."""
        candidate = {"titles": ["Different Event", "AI Summit 2024"]}
        existing = {"titles": "AI Summit 2024"}
        assert scorer.field_score(candidate, existing, "titles[]") == 1.0

    def test_field_missing_on_one_side_is_skipped(self, scorer):
        """Test that only fields both sides hold count toward the mean."""
        from memoria.storage.base import StoredRecord

        record = StoredRecord(key="evt-1", value={"title": "AI Summit 2024"})
        scored = scorer.score(CANDIDATE_EVENT, record, ENTITIES)
        assert scored.confidence == 1.0
        assert scored.field_scores == {"title": 1.0}

    def test_weighted_mean(self, scorer):
        """Test that field weights shift the mean."""
        from memoria.storage.base import StoredRecord

        record = StoredRecord(key="evt-1", value=STORED_EVENT)
        plain = scorer.score(CANDIDATE_EVENT, record, ENTITIES)
        weighted = scorer.score(CANDIDATE_EVENT, record, ENTITIES, {"title": 3.0})
        assert plain.confidence == pytest.approx(0.7)
        assert weighted.confidence == pytest.approx((3.0 + 0.4) / 4.0)


class TestCandidateRetriever:
    """Tests for the entity prefilter."""

    @pytest.mark.asyncio
    async def test_object_fields_compare_by_leaf_text(self):
        """Test that key names of object-valued fields do not count as shared terms."""
        store = InMemoryRecordStore()
        await store.set("evt-1", {"venue": {"name": "Main Stage", "city": "Tallinn"}})
        await store.set("evt-2", {"venue": {"name": "Hall A", "city": "Riga"}})
        retriever = CandidateRetriever(store)

        found = await retriever.find_candidates(
            {"venue": {"name": "Hall A", "city": "Riga"}},
            entities={"venue": "location"},
            tags=[],
            limit=50,
        )

        assert [record.key for record in found] == ["evt-2"]


class TestRecognitionEngine:
    """Tests for RecognitionEngine.recognize()."""

    @pytest.fixture
    def store(self):
        return InMemoryRecordStore()

    @pytest.fixture
    def llm(self):
        llm = AsyncMock()
        llm.call.return_value = verdict(True, 0.9)
        return llm

    @pytest.mark.asyncio
    async def test_uncertain_band_calls_llm_exactly_once(self, store, llm):
        """Test that 0.70 with threshold 0.75 / lower 0.60 asks the LLM once."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, threshold=0.75, llm_lower_bound=0.60,
        ))

        llm.call.assert_awaited_once()
        assert result.is_match is True
        assert result.used_llm is True
        assert result.matching_key == "evt-1"
        assert result.matching_data == STORED_EVENT
        assert result.confidence == 0.9
        assert result.explanation == "same event"

    @pytest.mark.asyncio
    async def test_llm_prompt_and_schema(self, store, llm):
        """Test that the prompt carries both objects and the verdict schema is requested."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6, goal="deduplicating conference events",
        ))

        args, kwargs = llm.call.call_args
        prompt = args[0]
        assert "OBJECT 1 (Candidate)" in prompt
        assert "Hanzas Perons Center Riga Latvia" in prompt
        assert "0.700" in prompt
        assert "deduplicating conference events" in prompt
        assert kwargs["json_schema"]["required"] == ["isMatch", "confidence", "reasoning"]

    @pytest.mark.asyncio
    async def test_custom_prompt_placeholders(self, store, llm):
        """Test that ${candidateData}, ${existingData} and ${confidence} are substituted."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES,
            llm_lower_bound=0.6,
            custom_prompt="A=${candidateData} B=${existingData} C=${confidence}",
        ))

        prompt = llm.call.call_args[0][0]
        assert "${" not in prompt
        assert "C=0.700" in prompt

    @pytest.mark.asyncio
    async def test_llm_rejection(self, store, llm):
        """Test that an LLM "no" yields no match with the LLM's confidence."""
        llm.call.return_value = verdict(False, 0.8, "different cities")
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is True
        assert result.matching_key is None
        assert result.explanation == "different cities"

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_no_match(self, store, llm):
        """Test that a failed LLM call is a no-match with used_llm=True."""
        llm.call.side_effect = LLMCallError("rate limited")
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is True
        assert result.confidence == pytest.approx(0.7)
        assert "rate limited" in result.explanation

    @pytest.mark.parametrize("error", [
        ConnectionError("socket closed"),
        asyncio.TimeoutError(),
        ValueError("unexpected payload"),
    ])
    @pytest.mark.asyncio
    async def test_unwrapped_llm_errors_fall_back(self, store, llm, error):
        """Test that errors the LLM caller did not wrap still give the deterministic verdict."""
        llm.call.side_effect = error
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is True
        assert result.confidence == pytest.approx(0.7)
        assert result.explanation.startswith("LLM disambiguation failed")
        assert type(error).__name__ in result.explanation

    @pytest.mark.asyncio
    async def test_malformed_verdict_is_a_failure(self, store, llm):
        """Test that a verdict missing required fields is treated as an LLM failure."""
        llm.call.return_value = [LLMResponse(content='{"reasoning": "unsure"}')]
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is True

    @pytest.mark.asyncio
    async def test_uncertain_band_without_llm(self, store):
        """Test that the uncertain band is a no-match when no LLM is wired."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is False
        assert "no LLM" in result.explanation

    @pytest.mark.asyncio
    async def test_high_confidence_matches_without_llm(self, store, llm):
        """Test that c >= upper matches deterministically."""
        await store.set("evt-1", {"title": "AI Summit 2024", "venue": "Hanzas Perons Riga"})
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(
            {"title": "AI Summit 2024", "venue": "Hanzas Perons, Rīga"},
            RecognitionOptions(entities=ENTITIES),
        )

        llm.call.assert_not_awaited()
        assert result.is_match is True
        assert result.used_llm is False
        assert result.confidence == 1.0
        assert result.matching_key == "evt-1"

    @pytest.mark.asyncio
    async def test_upper_bound_below_threshold_auto_matches(self, store, llm):
        """Test that scores in [upper, threshold) match without the LLM and say so."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, threshold=0.75, llm_lower_bound=0.5, llm_upper_bound=0.65,
        ))

        llm.call.assert_not_awaited()
        assert result.is_match is True
        assert result.used_llm is False
        assert "llm_upper_bound" in result.explanation

    @pytest.mark.asyncio
    async def test_low_confidence_is_no_match(self, store, llm):
        """Test that c < lower is rejected without the LLM."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, threshold=0.9, llm_lower_bound=0.8,
        ))

        llm.call.assert_not_awaited()
        assert result.is_match is False
        assert result.used_llm is False
        assert result.confidence == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_empty_entity_map_is_no_match(self, store, llm):
        """Test that an empty entity map never matches."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(STORED_EVENT, RecognitionOptions(entities={}))

        assert result.is_match is False
        assert result.confidence == 0.0
        assert result.used_llm is False

    @pytest.mark.asyncio
    async def test_no_candidates(self, store, llm):
        """Test an empty store."""
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(entities=ENTITIES))

        assert result.is_match is False
        assert result.used_llm is False
        assert result.explanation == "No candidate records found"

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, store, llm):
        """Test that another tenant's record is never a candidate."""
        await store.set("evt-1", STORED_EVENT, scope=Scope(tenant_id="acme"))
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(STORED_EVENT, RecognitionOptions(
            entities=ENTITIES, tenant_id="globex",
        ))

        assert result.is_match is False
        assert result.explanation == "No candidate records found"

    @pytest.mark.asyncio
    async def test_tag_scoped_candidates(self, store, llm):
        """Test that tagged records are candidates even without shared entity terms."""
        await store.set("evt-1", {"title": "Summit"}, tags=["event"])
        await store.set("evt-2", {"title": "Unrelated"}, tags=["other"])
        engine = RecognitionEngine(store, llm=llm)

        scored = await engine.score_candidates(
            {"title": "Conference"},
            RecognitionOptions(entities={"title": "event"}, tags=["Event"]),
        )

        assert [s.key for s in scored] == ["evt-1"]
        assert scored[0].confidence == 0.0

    @pytest.mark.asyncio
    async def test_best_candidate_wins(self, store, llm):
        """Test that the highest confidence candidate is the one matched."""
        await store.set("evt-1", {"title": "AI Summit", "venue": "Tallinn"})
        await store.set("evt-2", {"title": "AI Summit", "venue": "Hanzas Perons Riga"})
        engine = RecognitionEngine(store, llm=llm)

        result = await engine.recognize(
            {"title": "AI Summit", "venue": "Hanzas Perons Riga"},
            RecognitionOptions(entities=ENTITIES),
        )

        assert result.matching_key == "evt-2"

    @pytest.mark.asyncio
    async def test_malformed_bounds_raise(self, store):
        """Test that bad bounds fail before any lookup."""
        engine = RecognitionEngine(store)
        with pytest.raises(ConfigurationError):
            await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
                entities=ENTITIES, threshold=0.7, llm_lower_bound=0.8,
            ))

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_llm(self, store, llm):
        """Test that a cancelled token abandons the LLM call."""
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm)
        token = CancellationToken()
        token.cancel("user navigated away")

        result = await engine.recognize(
            CANDIDATE_EVENT,
            RecognitionOptions(entities=ENTITIES, llm_lower_bound=0.6),
            token=token,
        )

        llm.call.assert_not_awaited()
        assert result.is_match is False
        assert result.used_llm is True
        assert "user navigated away" in result.explanation

    @pytest.mark.asyncio
    async def test_llm_timeout(self, store, llm):
        """Test that a slow LLM times out into a no-match."""
        async def slow_call(*args, **kwargs):
            await asyncio.sleep(5)
            return verdict(True, 0.9)

        llm.call.side_effect = slow_call
        await store.set("evt-1", STORED_EVENT)
        engine = RecognitionEngine(store, llm=llm, llm_timeout=0.05)

        result = await engine.recognize(CANDIDATE_EVENT, RecognitionOptions(
            entities=ENTITIES, llm_lower_bound=0.6,
        ))

        assert result.is_match is False
        assert result.used_llm is True
        assert "timed out" in result.explanation
