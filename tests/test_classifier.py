"""
Tests for status classification thresholds and the discrepancy override.
"""

from datetime import datetime

import pytest

from provcheck.classifier import (
    DISCREPANCY_NOTE,
    LOW_CONFIDENCE_NOTE,
    REVIEW_RECOMMENDED_NOTE,
    classify,
)
from provcheck.models import DataSource, FieldConfidence, ProviderStatus


def _fields(*discrepancy_lists):
    return {
        f"f{i}": FieldConfidence(
            value="x",
            confidence=90,
            source=DataSource.CSV_UPLOAD,
            last_verified=datetime.now(),
            discrepancies=list(d),
        )
        for i, d in enumerate(discrepancy_lists)
    }


class TestClassify:
    def test_high_confidence_clean_is_verified(self):
        result = classify(95, _fields([], []))
        assert result.status == ProviderStatus.VERIFIED
        assert result.validation_notes == ""

    def test_discrepancy_overrides_verified(self):
        result = classify(95, _fields([], ["Invalid ZIP code value"]))
        assert result.status == ProviderStatus.FLAGGED
        assert result.validation_notes == DISCREPANCY_NOTE

    def test_low_confidence(self):
        result = classify(40, _fields([]))
        assert result.status == ProviderStatus.FLAGGED
        assert result.validation_notes == LOW_CONFIDENCE_NOTE

    def test_low_note_kept_when_discrepancies_present(self):
        """The override only replaces a verified result."""
        result = classify(40, _fields(["x"]))
        assert result.validation_notes == LOW_CONFIDENCE_NOTE

    def test_middle_band(self):
        result = classify(80, _fields([]))
        assert result.status == ProviderStatus.FLAGGED
        assert result.validation_notes == REVIEW_RECOMMENDED_NOTE

    @pytest.mark.parametrize(
        "score, status, note",
        [
            (69.999, ProviderStatus.FLAGGED, LOW_CONFIDENCE_NOTE),
            (70, ProviderStatus.FLAGGED, REVIEW_RECOMMENDED_NOTE),
            (84.999, ProviderStatus.FLAGGED, REVIEW_RECOMMENDED_NOTE),
            (85, ProviderStatus.VERIFIED, ""),
            (100, ProviderStatus.VERIFIED, ""),
            (0, ProviderStatus.FLAGGED, LOW_CONFIDENCE_NOTE),
        ],
    )
    def test_boundaries(self, score, status, note):
        result = classify(score, _fields([]))
        assert result.status == status
        assert result.validation_notes == note

    def test_result_carries_inputs(self):
        fields = _fields([])
        now = datetime(2024, 1, 2, 3, 4, 5)
        result = classify(88.5, fields, now=now)
        assert result.overall_confidence == 88.5
        assert result.field_confidences is fields
        assert result.last_validated == now

    def test_as_changes(self):
        result = classify(88.5, _fields([]))
        changes = result.as_changes()
        assert changes["status"] == ProviderStatus.VERIFIED
        assert set(changes) == {
            "status",
            "overall_confidence",
            "field_confidences",
            "validation_notes",
            "last_validated",
        }
