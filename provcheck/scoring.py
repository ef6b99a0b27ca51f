"""
Confidence aggregation.

Turns a provider plus an optional registry hit into one FieldConfidence per
scored field, and reduces those to an overall score.

Rules for a single field, first match wins:
1. No value: 20, whatever the source.
2. Registry hit: 85, except phone and email which take their validator's
   score and issues (a registry hit does not excuse a malformed value).
3. No registry hit: phone and email use their validator; every other field
   gets a placeholder drawn from [60, 80) for "self-reported, unverified".
"""

import random
from datetime import datetime
from typing import Callable, Dict, Optional, Union

from .models import DataSource, FieldConfidence, Provider
from .validators import validate_address, validate_email, validate_phone

MISSING_CONFIDENCE = 20
REGISTRY_CONFIDENCE = 85
FALLBACK_LOW = 60
FALLBACK_SPAN = 20
NPI_FOUND_CONFIDENCE = 100
NPI_MISSING_CONFIDENCE = 50

GENERIC = "generic"
PHONE = "phone"
EMAIL = "email"

# npi is scored separately; address_line1 is rescored by the address
# validator after the generic pass.
SCORED_FIELDS = {
    "first_name": GENERIC,
    "last_name": GENERIC,
    "credential": GENERIC,
    "specialty": GENERIC,
    "phone": PHONE,
    "fax": GENERIC,
    "email": EMAIL,
    "address_line1": GENERIC,
    "city": GENERIC,
    "state": GENERIC,
    "zip_code": GENERIC,
    "organization_name": GENERIC,
}

_FORMAT_VALIDATORS = {PHONE: validate_phone, EMAIL: validate_email}

FallbackSource = Union[float, int, Callable[[], float]]


class ConfidenceScorer:
    """
    Scores provider fields.

    Args:
        fallback: Fixed confidence, or a zero-argument callable, used for
            generic fields without a registry hit
        rng: Random source for the default [60, 80) fallback band; ignored
            when fallback is given
        clock: Source of the last_verified timestamp
    """

    def __init__(
        self,
        fallback: Optional[FallbackSource] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if fallback is None:
            rng = rng or random.Random()
            self._fallback = lambda: FALLBACK_LOW + rng.random() * FALLBACK_SPAN
        elif callable(fallback):
            self._fallback = fallback
        else:
            value = float(fallback)
            self._fallback = lambda: value
        self.clock = clock

    @classmethod
    def from_settings(cls, settings) -> "ConfidenceScorer":
        if settings.fallback_confidence is not None:
            return cls(fallback=settings.fallback_confidence)
        rng = random.Random(settings.scoring_seed) if settings.scoring_seed is not None else None
        return cls(rng=rng)

    def score_field(
        self,
        field_name: str,
        value: Optional[str],
        registry_record,
        source: DataSource = DataSource.CSV_UPLOAD,
    ) -> FieldConfidence:
        rule = SCORED_FIELDS.get(field_name, GENERIC)
        discrepancies = []

        if not value:
            confidence = MISSING_CONFIDENCE
        elif rule in _FORMAT_VALIDATORS:
            result = _FORMAT_VALIDATORS[rule](value)
            confidence = result.confidence
            discrepancies.extend(result.issues)
        elif registry_record is not None:
            confidence = REGISTRY_CONFIDENCE
        else:
            confidence = self._fallback()

        return FieldConfidence(
            value=value,
            confidence=float(confidence),
            source=source,
            last_verified=self.clock(),
            discrepancies=discrepancies,
        )

    def score_npi(self, npi: str, registry_record) -> FieldConfidence:
        if registry_record is not None:
            return FieldConfidence(
                value=npi,
                confidence=float(NPI_FOUND_CONFIDENCE),
                source=DataSource.NPI_REGISTRY,
                last_verified=self.clock(),
                discrepancies=[],
            )
        return FieldConfidence(
            value=npi,
            confidence=float(NPI_MISSING_CONFIDENCE),
            source=DataSource.CSV_UPLOAD,
            last_verified=self.clock(),
            discrepancies=["NPI not found in registry"],
        )

    def score_provider(self, provider: Provider, registry_record) -> Dict[str, FieldConfidence]:
        scores = {"npi": self.score_npi(provider.npi, registry_record)}
        for field_name in SCORED_FIELDS:
            scores[field_name] = self.score_field(
                field_name, getattr(provider, field_name), registry_record
            )

        # The whole address is judged, but the result lands on line 1 only.
        address = validate_address(
            provider.address_line1, provider.city, provider.state, provider.zip_code
        )
        scores["address_line1"].confidence = float(address.confidence)
        scores["address_line1"].discrepancies = list(address.issues)
        return scores


def overall_confidence(field_confidences: Dict[str, FieldConfidence]) -> float:
    """Unweighted mean of every field's confidence."""
    if not field_confidences:
        return 0.0
    values = [fc.confidence for fc in field_confidences.values()]
    return sum(values) / len(values)
