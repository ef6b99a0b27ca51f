import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")


def normalize_text(s: str) -> str:
    return " ".join(s.strip().split())


def normalize_header(header: str) -> str:
    return normalize_text(header).lower()


def digits_only(s: str) -> str:
    return _NON_DIGITS.sub("", s)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty or whitespace-only values become None."""
    if value is None:
        return None
    cleaned = normalize_text(value)
    return cleaned or None
