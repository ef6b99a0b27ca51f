"""
Tests for field scoring and overall confidence.
"""

import random
from datetime import datetime

import pytest

from provcheck.models import DataSource, FieldConfidence
from provcheck.registry import RegistryRecord
from provcheck.scoring import SCORED_FIELDS, ConfidenceScorer, overall_confidence

HIT = RegistryRecord(npi="1234567890")


def _fc(confidence, discrepancies=()):
    return FieldConfidence(
        value="x",
        confidence=confidence,
        source=DataSource.CSV_UPLOAD,
        last_verified=datetime.now(),
        discrepancies=list(discrepancies),
    )


class TestScoreField:
    """Single-field policy."""

    def test_missing_value_is_fixed_floor(self, scorer):
        for record in (HIT, None):
            fc = scorer.score_field("specialty", None, record)
            assert fc.confidence == 20
            assert fc.discrepancies == []

    def test_missing_email_uses_floor_not_validator(self, scorer):
        """An empty value never reaches the email validator's 30."""
        assert scorer.score_field("email", None, None).confidence == 20

    def test_registry_hit_generic_field(self, scorer):
        fc = scorer.score_field("specialty", "Cardiology", HIT)
        assert fc.confidence == 85
        assert fc.discrepancies == []

    def test_registry_hit_does_not_excuse_bad_phone(self, scorer):
        fc = scorer.score_field("phone", "5551234567", HIT)
        assert fc.confidence == 50
        assert fc.discrepancies == ["Potential fake number (555 prefix)"]

    def test_registry_hit_email_uses_validator(self, scorer):
        assert scorer.score_field("email", "a@b.com", HIT).confidence == 85
        assert scorer.score_field("email", "nope", HIT).confidence == 40

    def test_no_registry_phone_uses_validator(self, scorer):
        assert scorer.score_field("phone", "212-555-1234", None).confidence == 95

    def test_no_registry_generic_uses_fallback(self, scorer):
        fc = scorer.score_field("city", "Boston", None)
        assert fc.confidence == 70
        assert fc.discrepancies == []

    def test_fax_is_scored_as_generic(self, scorer):
        """Only phone gets the phone validator; fax is a plain field."""
        fc = scorer.score_field("fax", "5551234567", None)
        assert fc.confidence == 70
        assert fc.discrepancies == []

    def test_source_and_value_recorded(self, scorer):
        fc = scorer.score_field("city", "Boston", None, source=DataSource.PDF_EXTRACTION)
        assert fc.value == "Boston"
        assert fc.source == DataSource.PDF_EXTRACTION
        assert isinstance(fc.last_verified, datetime)


class TestFallbackSource:
    """The unverified-field band is injectable."""

    def test_default_band(self):
        scorer = ConfidenceScorer(rng=random.Random(7))
        values = [scorer.score_field("city", "Boston", None).confidence for _ in range(200)]
        assert all(60 <= v < 80 for v in values)

    def test_seeded_rng_is_reproducible(self):
        a = ConfidenceScorer(rng=random.Random(42))
        b = ConfidenceScorer(rng=random.Random(42))
        assert [a.score_field("city", "X", None).confidence for _ in range(5)] == [
            b.score_field("city", "X", None).confidence for _ in range(5)
        ]

    def test_callable_fallback(self):
        scorer = ConfidenceScorer(fallback=lambda: 61.5)
        assert scorer.score_field("state", "MA", None).confidence == 61.5


class TestScoreProvider:
    """Whole-record scoring."""

    def test_all_fields_scored(self, scorer, clean_provider):
        scores = scorer.score_provider(clean_provider, HIT)
        assert set(scores) == {"npi"} | set(SCORED_FIELDS)

    def test_npi_hit(self, scorer, clean_provider):
        npi = scorer.score_provider(clean_provider, HIT)["npi"]
        assert npi.confidence == 100
        assert npi.source == DataSource.NPI_REGISTRY
        assert npi.discrepancies == []

    def test_npi_miss(self, scorer, clean_provider):
        npi = scorer.score_provider(clean_provider, None)["npi"]
        assert npi.confidence == 50
        assert npi.discrepancies == ["NPI not found in registry"]

    def test_address_result_lands_on_line1(self, scorer, messy_provider):
        scores = scorer.score_provider(messy_provider, None)
        assert scores["address_line1"].confidence == 65
        assert scores["address_line1"].discrepancies == ["Invalid ZIP code value"]
        # zip itself is still scored by the generic rule
        assert scores["zip_code"].confidence == 70
        assert scores["zip_code"].discrepancies == []

    def test_address_override_applies_with_registry_hit(self, scorer, clean_provider):
        clean_provider.state = "Mass"
        scores = scorer.score_provider(clean_provider, HIT)
        assert scores["address_line1"].discrepancies == ["Invalid state format"]
        assert scores["address_line1"].confidence == 65

    def test_clean_provider_with_hit(self, scorer, clean_provider):
        scores = scorer.score_provider(clean_provider, HIT)
        assert overall_confidence(scores) == pytest.approx(1135 / 13)


class TestOverallConfidence:
    """Unweighted mean."""

    def test_mean(self):
        scores = {"a": _fc(100), "b": _fc(50), "c": _fc(0)}
        assert overall_confidence(scores) == pytest.approx(50)

    @pytest.mark.parametrize("values", [[20], [85, 95, 90], [0, 0, 100, 60.5], [33.3] * 13])
    def test_mean_matches_sum_over_count(self, values):
        scores = {str(i): _fc(v) for i, v in enumerate(values)}
        assert overall_confidence(scores) == pytest.approx(sum(values) / len(values))

    def test_empty(self):
        assert overall_confidence({}) == 0.0
