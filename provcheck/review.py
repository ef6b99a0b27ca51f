"""
Review queue admission and resolution.

Items move pending -> approved or pending -> rejected and stay there.
A provider has at most one pending item at a time; admission checks and
creates under the provider's entity lock to keep it that way.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .classifier import Classification
from .logger import get_logger
from .models import (
    Priority,
    Provider,
    ProviderStatus,
    ReviewQueueItem,
    ReviewStatus,
    priority_rank,
)
from .storage import NotFoundError, ReviewItemNotFound, Store

logger = get_logger()

HIGH_PRIORITY_BELOW = 50
DEFAULT_REASON = "Flagged during validation"


class InvalidTransition(Exception):
    """A review item was asked to leave a terminal state."""

    def __init__(self, item_id: str, current: ReviewStatus, target: ReviewStatus):
        super().__init__(
            f"Review item {item_id} is already {current.value}; cannot mark it {target.value}"
        )
        self.item_id = item_id
        self.current = current
        self.target = target


@dataclass
class BulkResult:
    requested: int
    succeeded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.succeeded)


def priority_for(overall_confidence: float) -> Priority:
    return Priority.HIGH if overall_confidence < HIGH_PRIORITY_BELOW else Priority.MEDIUM


class ReviewQueue:
    def __init__(self, store: Store):
        self.store = store

    def admit(self, provider_id: str, classification: Classification) -> Optional[ReviewQueueItem]:
        """
        Queue a flagged provider for manual review.

        Returns:
            The new item, or None when the provider is not flagged or
            already has a pending item
        """
        if classification.status != ProviderStatus.FLAGGED:
            return None

        with self.store.entity_lock(provider_id):
            existing = self.store.get_review_item_by_provider_id(provider_id)
            if existing is not None:
                logger.debug(
                    "Provider already queued for review",
                    provider_id=provider_id,
                    item_id=existing.id,
                )
                return None

            item = self.store.create_review_item(
                ReviewQueueItem(
                    provider_id=provider_id,
                    priority=priority_for(classification.overall_confidence),
                    reason=classification.validation_notes or DEFAULT_REASON,
                )
            )

        logger.info(
            "Provider queued for review",
            provider_id=provider_id,
            item_id=item.id,
            priority=item.priority.value,
        )
        return item

    def _resolve(self, item_id: str, target: ReviewStatus) -> ReviewQueueItem:
        item = self.store.get_review_item(item_id)
        if item is None:
            raise ReviewItemNotFound(item_id)

        with self.store.entity_lock(item.provider_id):
            # Re-read under the lock; another caller may have resolved it.
            item = self.store.get_review_item(item_id)
            if item is None:
                raise ReviewItemNotFound(item_id)
            if not item.is_pending:
                raise InvalidTransition(item_id, item.status, target)

            resolved = self.store.update_review_item(
                item_id, status=target, resolved_at=datetime.now()
            )

            if target == ReviewStatus.APPROVED:
                provider = self.store.update_provider(
                    item.provider_id, status=ProviderStatus.VERIFIED
                )
                if provider is None:
                    logger.warning(
                        "Approved review item references a missing provider",
                        item_id=item_id,
                        provider_id=item.provider_id,
                    )

        logger.info(f"Review item {target.value}", item_id=item_id, provider_id=item.provider_id)
        return resolved

    def approve(self, item_id: str) -> ReviewQueueItem:
        """Approve an item and mark its provider verified."""
        return self._resolve(item_id, ReviewStatus.APPROVED)

    def reject(self, item_id: str) -> ReviewQueueItem:
        """Reject an item. The provider's status is left as it is."""
        return self._resolve(item_id, ReviewStatus.REJECTED)

    def _bulk(self, item_ids: Iterable[str], target: ReviewStatus) -> BulkResult:
        item_ids = list(item_ids)
        result = BulkResult(requested=len(item_ids))
        for item_id in item_ids:
            try:
                self._resolve(item_id, target)
            except (NotFoundError, InvalidTransition) as e:
                logger.warning("Skipping review item", item_id=item_id, reason=str(e))
                result.skipped.append(item_id)
                continue
            result.succeeded.append(item_id)
        return result

    def bulk_approve(self, item_ids: Iterable[str]) -> BulkResult:
        return self._bulk(item_ids, ReviewStatus.APPROVED)

    def bulk_reject(self, item_ids: Iterable[str]) -> BulkResult:
        return self._bulk(item_ids, ReviewStatus.REJECTED)

    def resolve_for_provider(self, provider_id: str) -> Optional[ReviewQueueItem]:
        """
        Close out the pending item of a provider that became verified
        outside the queue (e.g. a direct status edit).
        """
        with self.store.entity_lock(provider_id):
            item = self.store.get_review_item_by_provider_id(provider_id)
            if item is None:
                return None
            resolved = self.store.update_review_item(
                item.id, status=ReviewStatus.APPROVED, resolved_at=datetime.now()
            )
        logger.info("Review item auto-approved", item_id=item.id, provider_id=provider_id)
        return resolved

    def listing(
        self, include_resolved: bool = False
    ) -> List[Tuple[ReviewQueueItem, Optional[Provider]]]:
        """
        Queue view: items sorted high, medium, low (stable within a
        priority), each paired with its provider or None if it was deleted.
        """
        items = self.store.list_review_items()
        if not include_resolved:
            items = [i for i in items if i.is_pending]
        items.sort(key=lambda i: priority_rank(i.priority))
        return [(item, self.store.get_provider(item.provider_id)) for item in items]
