"""
Database schema and SQLite-backed store.

Uses SQLite with SQLAlchemy so the CLI keeps providers and the review
queue between runs.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, Float, String, Text, create_engine, literal_column
from sqlalchemy.orm import declarative_base, sessionmaker

from .models import (
    DraftStatus,
    EmailDraft,
    FieldConfidence,
    Priority,
    Provider,
    ProviderStatus,
    ReviewQueueItem,
    ReviewStatus,
    PROVIDER_DATA_FIELDS,
)
from .storage import Store, coerce_provider_changes, coerce_review_changes

Base = declarative_base()

# rowid preserves insertion order for default listings
INSERTION_ORDER = literal_column("rowid")


class ProviderRow(Base):
    """Provider record."""

    __tablename__ = "providers"

    id = Column(String(36), primary_key=True)
    npi = Column(String(10), nullable=False, index=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    credential = Column(Text)
    specialty = Column(Text)
    phone = Column(String(20))
    fax = Column(String(20))
    email = Column(Text)
    address_line1 = Column(Text)
    address_line2 = Column(Text)
    city = Column(Text)
    state = Column(String(2))
    zip_code = Column(String(10))
    organization_name = Column(Text)
    taxonomy_code = Column(String(20))
    license_number = Column(Text)
    license_state = Column(String(2))
    status = Column(String(20), nullable=False, default=ProviderStatus.PENDING.value)
    overall_confidence = Column(Float, nullable=False, default=0.0)
    field_confidences = Column(JSON)
    validation_notes = Column(Text)
    last_validated = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class ReviewItemRow(Base):
    """Review queue entry. provider_id is not a foreign key; items can outlive their provider."""

    __tablename__ = "review_queue"

    id = Column(String(36), primary_key=True)
    provider_id = Column(String(36), nullable=False, index=True)
    priority = Column(String(20), nullable=False, default=Priority.MEDIUM.value)
    reason = Column(Text, nullable=False)
    assigned_to = Column(Text)
    status = Column(String(20), nullable=False, default=ReviewStatus.PENDING.value)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class EmailDraftRow(Base):
    __tablename__ = "email_drafts"

    id = Column(String(36), primary_key=True)
    provider_id = Column(String(36), nullable=False)
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    recipient_email = Column(Text)
    status = Column(String(20), nullable=False, default=DraftStatus.DRAFT.value)
    sent_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    engine.dispose()


def _encode_confidences(value: Optional[Dict[str, FieldConfidence]]):
    if value is None:
        return None
    return {name: fc.to_dict() for name, fc in value.items()}


def _decode_confidences(value) -> Optional[Dict[str, FieldConfidence]]:
    if value is None:
        return None
    return {name: FieldConfidence.from_dict(data) for name, data in value.items()}


def _provider_from_row(row: ProviderRow) -> Provider:
    data = {name: getattr(row, name) for name in PROVIDER_DATA_FIELDS}
    return Provider(
        id=row.id,
        status=ProviderStatus(row.status),
        overall_confidence=row.overall_confidence or 0.0,
        field_confidences=_decode_confidences(row.field_confidences),
        validation_notes=row.validation_notes,
        last_validated=row.last_validated,
        created_at=row.created_at,
        updated_at=row.updated_at,
        **data,
    )


def _apply_provider(row: ProviderRow, values: Dict) -> None:
    for name, value in values.items():
        if name == "status":
            value = ProviderStatus(value).value
        elif name == "field_confidences":
            value = _encode_confidences(value)
        setattr(row, name, value)


def _review_from_row(row: ReviewItemRow) -> ReviewQueueItem:
    return ReviewQueueItem(
        id=row.id,
        provider_id=row.provider_id,
        priority=Priority(row.priority),
        reason=row.reason,
        assigned_to=row.assigned_to,
        status=ReviewStatus(row.status),
        resolved_at=row.resolved_at,
        created_at=row.created_at,
    )


def _apply_review(row: ReviewItemRow, values: Dict) -> None:
    for name, value in values.items():
        if name in ("status", "priority"):
            value = value.value
        setattr(row, name, value)


def _draft_from_row(row: EmailDraftRow) -> EmailDraft:
    return EmailDraft(
        id=row.id,
        provider_id=row.provider_id,
        subject=row.subject,
        body=row.body,
        recipient_email=row.recipient_email,
        status=DraftStatus(row.status),
        sent_at=row.sent_at,
        created_at=row.created_at,
    )


class SqlStore(Store):
    """Store backed by a SQLite file through SQLAlchemy."""

    def __init__(self, db_path: Path):
        super().__init__()
        self.db_path = Path(db_path)
        init_database(self.db_path)
        self.engine = create_engine(f"sqlite:///{self.db_path}")
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.RLock()

    def close(self) -> None:
        self.engine.dispose()

    # Providers

    def list_providers(self) -> List[Provider]:
        with self._lock, self.Session() as session:
            rows = session.query(ProviderRow).order_by(INSERTION_ORDER).all()
            return [_provider_from_row(r) for r in rows]

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._lock, self.Session() as session:
            row = session.get(ProviderRow, provider_id)
            return _provider_from_row(row) if row else None

    def get_provider_by_npi(self, npi: str) -> Optional[Provider]:
        with self._lock, self.Session() as session:
            row = (
                session.query(ProviderRow)
                .filter_by(npi=npi)
                .order_by(INSERTION_ORDER)
                .first()
            )
            return _provider_from_row(row) if row else None

    def create_provider(self, provider: Provider) -> Provider:
        with self._lock, self.Session() as session:
            if session.get(ProviderRow, provider.id) is not None:
                raise ValueError(f"Provider already exists: {provider.id}")
            row = ProviderRow(id=provider.id, created_at=provider.created_at, updated_at=provider.updated_at)
            _apply_provider(row, {
                **{name: getattr(provider, name) for name in PROVIDER_DATA_FIELDS},
                "status": provider.status,
                "overall_confidence": provider.overall_confidence,
                "field_confidences": provider.field_confidences,
                "validation_notes": provider.validation_notes,
                "last_validated": provider.last_validated,
            })
            session.add(row)
            session.commit()
            return _provider_from_row(row)

    def update_provider(self, provider_id: str, **changes) -> Optional[Provider]:
        changes = coerce_provider_changes(changes)
        with self._lock, self.Session() as session:
            row = session.get(ProviderRow, provider_id)
            if row is None:
                return None
            changes.setdefault("updated_at", datetime.now())
            _apply_provider(row, changes)
            session.commit()
            return _provider_from_row(row)

    def delete_provider(self, provider_id: str) -> bool:
        with self._lock, self.Session() as session:
            deleted = session.query(ProviderRow).filter_by(id=provider_id).delete()
            session.commit()
            return deleted > 0

    def clear_providers(self) -> None:
        with self._lock, self.Session() as session:
            session.query(ProviderRow).delete()
            session.query(ReviewItemRow).delete()
            session.commit()

    # Review queue

    def list_review_items(self) -> List[ReviewQueueItem]:
        with self._lock, self.Session() as session:
            rows = session.query(ReviewItemRow).order_by(INSERTION_ORDER).all()
            return [_review_from_row(r) for r in rows]

    def get_review_item(self, item_id: str) -> Optional[ReviewQueueItem]:
        with self._lock, self.Session() as session:
            row = session.get(ReviewItemRow, item_id)
            return _review_from_row(row) if row else None

    def get_review_item_by_provider_id(self, provider_id: str) -> Optional[ReviewQueueItem]:
        with self._lock, self.Session() as session:
            row = (
                session.query(ReviewItemRow)
                .filter_by(provider_id=provider_id, status=ReviewStatus.PENDING.value)
                .order_by(INSERTION_ORDER)
                .first()
            )
            return _review_from_row(row) if row else None

    def create_review_item(self, item: ReviewQueueItem) -> ReviewQueueItem:
        with self._lock, self.Session() as session:
            if session.get(ReviewItemRow, item.id) is not None:
                raise ValueError(f"Review item already exists: {item.id}")
            row = ReviewItemRow(
                id=item.id,
                provider_id=item.provider_id,
                priority=Priority(item.priority).value,
                reason=item.reason,
                assigned_to=item.assigned_to,
                status=ReviewStatus(item.status).value,
                resolved_at=item.resolved_at,
                created_at=item.created_at,
            )
            session.add(row)
            session.commit()
            return _review_from_row(row)

    def update_review_item(self, item_id: str, **changes) -> Optional[ReviewQueueItem]:
        changes = coerce_review_changes(changes)
        with self._lock, self.Session() as session:
            row = session.get(ReviewItemRow, item_id)
            if row is None:
                return None
            _apply_review(row, changes)
            session.commit()
            return _review_from_row(row)

    def delete_review_item(self, item_id: str) -> bool:
        with self._lock, self.Session() as session:
            deleted = session.query(ReviewItemRow).filter_by(id=item_id).delete()
            session.commit()
            return deleted > 0

    # Email drafts

    def get_email_draft(self, draft_id: str) -> Optional[EmailDraft]:
        with self._lock, self.Session() as session:
            row = session.get(EmailDraftRow, draft_id)
            return _draft_from_row(row) if row else None

    def create_email_draft(self, draft: EmailDraft) -> EmailDraft:
        with self._lock, self.Session() as session:
            row = EmailDraftRow(
                id=draft.id,
                provider_id=draft.provider_id,
                subject=draft.subject,
                body=draft.body,
                recipient_email=draft.recipient_email,
                status=DraftStatus(draft.status).value,
                sent_at=draft.sent_at,
                created_at=draft.created_at,
            )
            session.add(row)
            session.commit()
            return _draft_from_row(row)
