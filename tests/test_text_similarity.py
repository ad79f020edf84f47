"""
Tests for Text Normalization and Similarity

Covers normalize(), extract_terms() and SimilarityScorer.
"""

import pytest

from memoria.recognition.similarity import SimilarityScorer
from memoria.recognition.text import extract_terms, normalize


class TestNormalize:
    """Tests for normalize()."""

    def test_strips_diacritics_and_punctuation(self):
        """Test that diacritics, punctuation and case are removed."""
        assert normalize("Pršu ielā 13b, Rīgā!") == "prsu iela 13b riga"

    def test_collapses_whitespace(self):
        """Test that runs of whitespace and underscores become one space."""
        assert normalize("  AI\t\tSummit__2024 \n") == "ai summit 2024"

    def test_none_and_non_strings(self):
        """Test that None becomes empty and other values are stringified."""
        assert normalize(None) == ""
        assert normalize(2024) == "2024"

    def test_idempotent(self):
        """Test that normalizing twice changes nothing."""
        for text in ["Pršu ielā 13b, Rīgā!", "Hello,   World", "", "ÉCOLE-normale"]:
            once = normalize(text)
            assert normalize(once) == once


class TestExtractTerms:
    """Tests for extract_terms()."""

    def test_drops_short_tokens_and_stop_words(self):
        """Test that tokens under three characters and stop words are dropped."""
        terms = extract_terms("Met Anna at the AI Summit in Riga")
        assert terms == frozenset({"met", "anna", "summit", "riga"})

    def test_empty_text(self):
        """Test that empty text yields no terms."""
        assert extract_terms("") == frozenset()
        assert extract_terms(None) == frozenset()


class TestSimilarityScorer:
    """Tests for SimilarityScorer."""

    @pytest.fixture
    def scorer(self):
        return SimilarityScorer()

    def test_address_variant_scores_full_overlap(self, scorer):
        """Test that a short address contained in a longer one scores 1.0."""
        assert scorer.score("Pršu ielā 13b, Rīgā!", "Pršu iela 13B") == 1.0

    def test_jaccard_method(self):
        """Test that jaccard divides by the union."""
        scorer = SimilarityScorer(method="jaccard")
        assert scorer.score("Pršu ielā 13b, Rīgā!", "Pršu iela 13B") == pytest.approx(0.75)

    def test_unknown_method_rejected(self):
        """Test that an unknown method fails at construction."""
        with pytest.raises(ValueError):
            SimilarityScorer(method="cosine")

    def test_symmetric_and_bounded(self, scorer):
        """Test score(a, b) == score(b, a) and stays within [0, 1]."""
        pairs = [
            ("AI Summit 2024", "Summit on AI, 2024 edition"),
            ("Hanzas Perons Riga", "Hanzas Arena Tallinn"),
            ("completely unrelated", "nothing shared here"),
        ]
        for a, b in pairs:
            forward = scorer.score(a, b)
            assert forward == scorer.score(b, a)
            assert 0.0 <= forward <= 1.0

    def test_empty_input_scores_zero(self, scorer):
        """Test that an empty side gives 0.0."""
        assert scorer.score("", "AI Summit") == 0.0
        assert scorer.score("AI Summit", None) == 0.0

    def test_compare_exact_match_without_terms(self, scorer):
        """Test that compare() gives 1.0 for equal values with no significant terms."""
        assert scorer.score("AI", "ai") == 0.0
        assert scorer.compare("AI", "ai") == 1.0
        assert scorer.compare(42, "42") == 1.0

    def test_compare_empty_values(self, scorer):
        """Test that two empty values are not treated as equal."""
        assert scorer.compare("", "") == 0.0

    def test_are_similar_uses_threshold(self):
        """Test the threshold check."""
        scorer = SimilarityScorer(threshold=0.9, method="jaccard")
        assert scorer.are_similar("AI Summit Riga", "Riga AI Summit")
        assert not scorer.are_similar("AI Summit Riga", "AI Summit Tallinn")
