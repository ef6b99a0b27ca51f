"""
Entity store interface and the in-memory adapter.

Every update is a read-modify-write performed under the store's lock, so
two callers changing the same provider or review item cannot lose each
other's writes. Callers that need several store calls to act as one unit
(review admission) hold entity_lock() for the entity involved.
"""

import copy
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .models import (
    DraftStatus,
    EmailDraft,
    Priority,
    Provider,
    ProviderStatus,
    ReviewQueueItem,
    ReviewStatus,
)


class NotFoundError(LookupError):
    """An operation referenced an entity id the store does not have."""


class ProviderNotFound(NotFoundError):
    def __init__(self, provider_id: str):
        super().__init__(f"Provider not found: {provider_id}")
        self.provider_id = provider_id


class ReviewItemNotFound(NotFoundError):
    def __init__(self, item_id: str):
        super().__init__(f"Review item not found: {item_id}")
        self.item_id = item_id


_PROVIDER_FIELDS = {f.name for f in fields(Provider)}
_REVIEW_FIELDS = {f.name for f in fields(ReviewQueueItem)}


def _check_fields(changes: Dict[str, Any], allowed: set, kind: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")
    if "id" in changes:
        raise ValueError(f"{kind} id cannot be changed")


def coerce_provider_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(changes, _PROVIDER_FIELDS, "provider")
    changes = dict(changes)
    if "status" in changes:
        changes["status"] = ProviderStatus(changes["status"])
    return changes


def coerce_review_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(changes, _REVIEW_FIELDS, "review item")
    changes = dict(changes)
    if "status" in changes:
        changes["status"] = ReviewStatus(changes["status"])
    if "priority" in changes:
        changes["priority"] = Priority(changes["priority"])
    return changes


class Store(ABC):
    """Keyed storage for providers, review items and email drafts."""

    def __init__(self):
        # key -> [lock, number of holders and waiters]
        self._entity_locks: Dict[str, list] = {}
        self._entity_locks_guard = threading.Lock()

    @contextmanager
    def entity_lock(self, key: str) -> Iterator[None]:
        """
        Serialize multi-step operations on one entity.

        Locks are reentrant and dropped once nobody holds or waits on them,
        so the table only grows with concurrently active keys.
        """
        with self._entity_locks_guard:
            entry = self._entity_locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._entity_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entity_locks[key]

    # Providers

    @abstractmethod
    def list_providers(self) -> List[Provider]: ...

    @abstractmethod
    def get_provider(self, provider_id: str) -> Optional[Provider]: ...

    @abstractmethod
    def get_provider_by_npi(self, npi: str) -> Optional[Provider]: ...

    @abstractmethod
    def create_provider(self, provider: Provider) -> Provider: ...

    def bulk_create_providers(self, providers: Iterable[Provider]) -> List[Provider]:
        return [self.create_provider(p) for p in providers]

    @abstractmethod
    def update_provider(self, provider_id: str, **changes) -> Optional[Provider]:
        """Apply a partial update; returns None if the provider is unknown."""

    @abstractmethod
    def delete_provider(self, provider_id: str) -> bool: ...

    @abstractmethod
    def clear_providers(self) -> None:
        """Remove all providers and review items."""

    # Review queue

    @abstractmethod
    def list_review_items(self) -> List[ReviewQueueItem]: ...

    @abstractmethod
    def get_review_item(self, item_id: str) -> Optional[ReviewQueueItem]: ...

    @abstractmethod
    def get_review_item_by_provider_id(self, provider_id: str) -> Optional[ReviewQueueItem]:
        """Return the pending review item for a provider, if any."""

    @abstractmethod
    def create_review_item(self, item: ReviewQueueItem) -> ReviewQueueItem: ...

    @abstractmethod
    def update_review_item(self, item_id: str, **changes) -> Optional[ReviewQueueItem]: ...

    @abstractmethod
    def delete_review_item(self, item_id: str) -> bool: ...

    # Email drafts

    @abstractmethod
    def get_email_draft(self, draft_id: str) -> Optional[EmailDraft]: ...

    @abstractmethod
    def create_email_draft(self, draft: EmailDraft) -> EmailDraft: ...


class MemoryStore(Store):
    """
    Dict-backed store. Listings keep insertion order. Entities are copied on
    the way in and out so callers cannot mutate stored state directly.
    """

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._providers: Dict[str, Provider] = {}
        self._review_items: Dict[str, ReviewQueueItem] = {}
        self._email_drafts: Dict[str, EmailDraft] = {}

    def list_providers(self) -> List[Provider]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._providers.values()]

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._lock:
            provider = self._providers.get(provider_id)
            return copy.deepcopy(provider) if provider else None

    def get_provider_by_npi(self, npi: str) -> Optional[Provider]:
        with self._lock:
            for provider in self._providers.values():
                if provider.npi == npi:
                    return copy.deepcopy(provider)
        return None

    def create_provider(self, provider: Provider) -> Provider:
        with self._lock:
            if provider.id in self._providers:
                raise ValueError(f"Provider already exists: {provider.id}")
            self._providers[provider.id] = copy.deepcopy(provider)
            return copy.deepcopy(provider)

    def update_provider(self, provider_id: str, **changes) -> Optional[Provider]:
        changes = coerce_provider_changes(changes)
        with self._lock:
            provider = self._providers.get(provider_id)
            if provider is None:
                return None
            changes["updated_at"] = datetime.now()
            updated = replace(provider, **copy.deepcopy(changes))
            self._providers[provider_id] = updated
            return copy.deepcopy(updated)

    def delete_provider(self, provider_id: str) -> bool:
        with self._lock:
            return self._providers.pop(provider_id, None) is not None

    def clear_providers(self) -> None:
        with self._lock:
            self._providers.clear()
            self._review_items.clear()

    def list_review_items(self) -> List[ReviewQueueItem]:
        with self._lock:
            return [copy.deepcopy(i) for i in self._review_items.values()]

    def get_review_item(self, item_id: str) -> Optional[ReviewQueueItem]:
        with self._lock:
            item = self._review_items.get(item_id)
            return copy.deepcopy(item) if item else None

    def get_review_item_by_provider_id(self, provider_id: str) -> Optional[ReviewQueueItem]:
        with self._lock:
            for item in self._review_items.values():
                if item.provider_id == provider_id and item.is_pending:
                    return copy.deepcopy(item)
        return None

    def create_review_item(self, item: ReviewQueueItem) -> ReviewQueueItem:
        with self._lock:
            if item.id in self._review_items:
                raise ValueError(f"Review item already exists: {item.id}")
            self._review_items[item.id] = copy.deepcopy(item)
            return copy.deepcopy(item)

    def update_review_item(self, item_id: str, **changes) -> Optional[ReviewQueueItem]:
        changes = coerce_review_changes(changes)
        with self._lock:
            item = self._review_items.get(item_id)
            if item is None:
                return None
            updated = replace(item, **changes)
            self._review_items[item_id] = updated
            return copy.deepcopy(updated)

    def delete_review_item(self, item_id: str) -> bool:
        with self._lock:
            return self._review_items.pop(item_id, None) is not None

    def get_email_draft(self, draft_id: str) -> Optional[EmailDraft]:
        with self._lock:
            draft = self._email_drafts.get(draft_id)
            return copy.deepcopy(draft) if draft else None

    def create_email_draft(self, draft: EmailDraft) -> EmailDraft:
        with self._lock:
            draft = replace(draft, status=DraftStatus(draft.status))
            self._email_drafts[draft.id] = draft
            return copy.deepcopy(draft)
