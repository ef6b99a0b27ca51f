"""
Format and sanity checks for individual contact fields.

Each validator returns a ValidationResult. The clean baselines and the
per-issue penalties differ by field and are fixed values that downstream
thresholds depend on:

    phone:   95 clean, else max(0, 70 - 20 * issues), 0 when missing
    address: 90 clean, else max(0, 80 - 15 * issues)
    email:   85 clean, else max(0, 60 - 20 * issues), 30 when missing
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from .normalize import digits_only

ZIP_RE = re.compile(r"\d{5}(-\d{4})?")
STATE_RE = re.compile(r"[A-Z]{2}")
EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
REPEATING_DIGITS_RE = re.compile(r"(.)\1+")


@dataclass
class ValidationResult:
    valid: bool
    confidence: float
    issues: List[str] = field(default_factory=list)


def _result(issues: List[str], clean: float, start: float, penalty: float) -> ValidationResult:
    if not issues:
        return ValidationResult(valid=True, confidence=clean, issues=[])
    confidence = max(0, start - penalty * len(issues))
    return ValidationResult(valid=False, confidence=confidence, issues=issues)


def validate_phone(phone: Optional[str]) -> ValidationResult:
    if not phone:
        return ValidationResult(valid=False, confidence=0, issues=["Phone number missing"])

    cleaned = digits_only(phone)
    issues: List[str] = []

    if len(cleaned) != 10:
        issues.append("Invalid phone number length")
    if cleaned.startswith("555"):
        issues.append("Potential fake number (555 prefix)")
    if cleaned == "0000000000" or REPEATING_DIGITS_RE.fullmatch(cleaned):
        issues.append("Invalid repeating digits")

    return _result(issues, clean=95, start=70, penalty=20)


def validate_address(
    address_line1: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> ValidationResult:
    """Check that an address is complete and its zip/state are well formed."""
    issues: List[str] = []

    if not address_line1:
        issues.append("Address line 1 missing")
    if not city:
        issues.append("City missing")
    if not state:
        issues.append("State missing")
    if not zip_code:
        issues.append("ZIP code missing")

    if zip_code and not ZIP_RE.fullmatch(zip_code):
        issues.append("Invalid ZIP code format")
    if zip_code == "00000":
        issues.append("Invalid ZIP code value")
    if state and not STATE_RE.fullmatch(state):
        issues.append("Invalid state format")

    return _result(issues, clean=90, start=80, penalty=15)


def validate_email(email: Optional[str]) -> ValidationResult:
    # Missing scores above malformed
    if not email:
        return ValidationResult(valid=False, confidence=30, issues=["Email missing"])

    issues: List[str] = []
    if not EMAIL_RE.fullmatch(email):
        issues.append("Invalid email format")

    return _result(issues, clean=85, start=60, penalty=20)
