from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .models import FieldConfidence, ProviderStatus

LOW_CONFIDENCE_THRESHOLD = 70
VERIFIED_THRESHOLD = 85

LOW_CONFIDENCE_NOTE = "Low confidence score - manual review required"
REVIEW_RECOMMENDED_NOTE = "Some fields have low confidence - review recommended"
DISCREPANCY_NOTE = "Data discrepancies detected"


@dataclass
class Classification:
    status: ProviderStatus
    overall_confidence: float
    field_confidences: Dict[str, FieldConfidence]
    validation_notes: str
    last_validated: datetime

    def as_changes(self) -> Dict[str, Any]:
        """Partial provider update carrying this result."""
        return {
            "status": self.status,
            "overall_confidence": self.overall_confidence,
            "field_confidences": self.field_confidences,
            "validation_notes": self.validation_notes,
            "last_validated": self.last_validated,
        }


def has_discrepancies(field_confidences: Dict[str, FieldConfidence]) -> bool:
    return any(fc.discrepancies for fc in field_confidences.values())


def classify(
    overall_confidence: float,
    field_confidences: Dict[str, FieldConfidence],
    now: Optional[datetime] = None,
) -> Classification:
    """
    Map an overall score to a provider status.

    Below 70 and 70 up to (not including) 85 are flagged with different
    notes; 85 and above is verified unless any field reported a
    discrepancy, which downgrades it to flagged.
    """
    if overall_confidence < LOW_CONFIDENCE_THRESHOLD:
        status, notes = ProviderStatus.FLAGGED, LOW_CONFIDENCE_NOTE
    elif overall_confidence < VERIFIED_THRESHOLD:
        status, notes = ProviderStatus.FLAGGED, REVIEW_RECOMMENDED_NOTE
    else:
        status, notes = ProviderStatus.VERIFIED, ""

    if status == ProviderStatus.VERIFIED and has_discrepancies(field_confidences):
        status, notes = ProviderStatus.FLAGGED, DISCREPANCY_NOTE

    return Classification(
        status=status,
        overall_confidence=overall_confidence,
        field_confidences=field_confidences,
        validation_notes=notes,
        last_validated=now or datetime.now(),
    )
