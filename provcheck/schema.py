import re
from typing import Any, Dict, List

REQUIRED_STR_FIELDS = ["npi", "first_name", "last_name"]
OPTIONAL_STR_FIELDS = [
    "credential",
    "specialty",
    "phone",
    "fax",
    "email",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "zip_code",
    "organization_name",
    "taxonomy_code",
    "license_number",
    "license_state",
]

_NPI_RE = re.compile(r"^\d{10}$")


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_provider_record(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means the record
    can be ingested.

    These are structural checks only; field quality is scored later by the
    validation pipeline, so a bad phone or zip is not an error here.
    """
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    if _is_non_empty_str(data.get("npi")) and not _NPI_RE.match(data["npi"]):
        errors.append("Field 'npi' must be a 10-digit number")

    return errors
