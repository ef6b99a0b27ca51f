"""
Entity types shared by the pipeline, the review queue and the stores.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ProviderStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FLAGGED = "flagged"
    ERROR = "error"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class DataSource(str, Enum):
    CSV_UPLOAD = "csv_upload"
    PDF_EXTRACTION = "pdf_extraction"
    NPI_REGISTRY = "npi_registry"
    WEB_SCRAPE = "web_scrape"
    MANUAL_ENTRY = "manual_entry"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DraftStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class FieldConfidence:
    """Confidence assigned to one provider field during a validation pass."""

    value: Optional[str]
    confidence: float
    source: DataSource
    last_verified: datetime
    discrepancies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "confidence": self.confidence,
            "source": self.source.value,
            "last_verified": self.last_verified.isoformat(),
            "discrepancies": list(self.discrepancies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldConfidence":
        return cls(
            value=data.get("value"),
            confidence=float(data["confidence"]),
            source=DataSource(data["source"]),
            last_verified=datetime.fromisoformat(data["last_verified"]),
            discrepancies=list(data.get("discrepancies") or []),
        )


@dataclass
class Provider:
    """
    A directory record. Only id, npi, first_name and last_name are required;
    everything the pipeline writes starts empty until the first validation.
    """

    npi: str
    first_name: str
    last_name: str
    id: str = field(default_factory=new_id)
    credential: Optional[str] = None
    specialty: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    email: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    organization_name: Optional[str] = None
    taxonomy_code: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    status: ProviderStatus = ProviderStatus.PENDING
    overall_confidence: float = 0.0
    field_confidences: Optional[Dict[str, FieldConfidence]] = None
    validation_notes: Optional[str] = None
    last_validated: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Attributes that describe the provider, as opposed to validation state.
PROVIDER_DATA_FIELDS = (
    "npi",
    "first_name",
    "last_name",
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
)


@dataclass
class ReviewQueueItem:
    """A manual review task. provider_id is a reference, not ownership."""

    provider_id: str
    reason: str
    priority: Priority = Priority.MEDIUM
    status: ReviewStatus = ReviewStatus.PENDING
    id: str = field(default_factory=new_id)
    assigned_to: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_pending(self) -> bool:
        return self.status == ReviewStatus.PENDING


@dataclass
class EmailDraft:
    provider_id: str
    subject: str
    body: str
    recipient_email: Optional[str] = None
    status: DraftStatus = DraftStatus.DRAFT
    id: str = field(default_factory=new_id)
    sent_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)


def priority_rank(priority) -> int:
    """Sort key for queue listings; unknown priorities rank as medium."""
    try:
        return PRIORITY_RANK[Priority(priority)]
    except ValueError:
        return PRIORITY_RANK[Priority.MEDIUM]
