"""
Tests for the entity stores. Every test runs against both the in-memory
store and the SQLite store.
"""

import threading
from datetime import datetime

import pytest

from provcheck.classifier import classify
from provcheck.database import SqlStore
from provcheck.models import (
    DataSource,
    DraftStatus,
    EmailDraft,
    FieldConfidence,
    Priority,
    Provider,
    ProviderStatus,
    ReviewQueueItem,
    ReviewStatus,
)
from provcheck.review import ReviewQueue
from provcheck.storage import MemoryStore


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryStore()
    else:
        store = SqlStore(tmp_path / "providers.db")
        yield store
        store.close()


def _provider(npi="1234567890", **kwargs):
    return Provider(npi=npi, first_name="Mary", last_name="Johnson", **kwargs)


class TestProviders:
    def test_create_and_get(self, any_store):
        created = any_store.create_provider(_provider(city="Boston", state="MA"))

        fetched = any_store.get_provider(created.id)

        assert fetched.id == created.id
        assert fetched.city == "Boston"
        assert fetched.status == ProviderStatus.PENDING
        assert fetched.overall_confidence == 0.0
        assert fetched.field_confidences is None

    def test_get_unknown(self, any_store):
        assert any_store.get_provider("missing") is None

    def test_get_by_npi(self, any_store):
        any_store.create_provider(_provider("1111111111"))
        target = any_store.create_provider(_provider("2222222222"))

        assert any_store.get_provider_by_npi("2222222222").id == target.id
        assert any_store.get_provider_by_npi("3333333333") is None

    def test_listing_keeps_insertion_order(self, any_store):
        npis = ["1000000003", "1000000001", "1000000002"]
        ids = [any_store.create_provider(_provider(npi)).id for npi in npis]

        assert [p.id for p in any_store.list_providers()] == ids

    def test_duplicate_id_rejected(self, any_store):
        provider = any_store.create_provider(_provider())
        with pytest.raises(ValueError):
            any_store.create_provider(provider)

    def test_bulk_create(self, any_store):
        created = any_store.bulk_create_providers(
            [_provider("1000000001"), _provider("1000000002")]
        )
        assert len(created) == 2
        assert len(any_store.list_providers()) == 2

    def test_update_merges_and_stamps(self, any_store):
        created = any_store.create_provider(_provider(phone="212-555-1234"))

        updated = any_store.update_provider(created.id, status="flagged", validation_notes="check")

        assert updated.status == ProviderStatus.FLAGGED
        assert updated.validation_notes == "check"
        assert updated.phone == "212-555-1234"
        assert updated.updated_at >= created.updated_at
        assert any_store.get_provider(created.id).status == ProviderStatus.FLAGGED

    def test_update_unknown_returns_none(self, any_store):
        assert any_store.update_provider("missing", status="verified") is None

    def test_update_rejects_unknown_field(self, any_store):
        created = any_store.create_provider(_provider())
        with pytest.raises(ValueError, match="Unknown provider field"):
            any_store.update_provider(created.id, shoe_size="10")

    def test_update_rejects_id_change(self, any_store):
        created = any_store.create_provider(_provider())
        with pytest.raises(ValueError):
            any_store.update_provider(created.id, id="other")

    def test_update_rejects_bad_status(self, any_store):
        created = any_store.create_provider(_provider())
        with pytest.raises(ValueError):
            any_store.update_provider(created.id, status="approved")

    def test_field_confidences_round_trip(self, any_store):
        checked = datetime(2024, 3, 1, 9, 30)
        created = any_store.create_provider(_provider())
        confidences = {
            "npi": FieldConfidence(
                value="1234567890",
                confidence=50,
                source=DataSource.CSV_UPLOAD,
                last_verified=checked,
                discrepancies=["NPI not found in registry"],
            )
        }

        any_store.update_provider(created.id, field_confidences=confidences, overall_confidence=50.0)

        fetched = any_store.get_provider(created.id)
        assert fetched.overall_confidence == 50.0
        npi = fetched.field_confidences["npi"]
        assert npi.confidence == 50
        assert npi.source == DataSource.CSV_UPLOAD
        assert npi.last_verified == checked
        assert npi.discrepancies == ["NPI not found in registry"]

    def test_delete(self, any_store):
        created = any_store.create_provider(_provider())
        assert any_store.delete_provider(created.id) is True
        assert any_store.delete_provider(created.id) is False
        assert any_store.get_provider(created.id) is None

    def test_clear_removes_review_items_too(self, any_store):
        created = any_store.create_provider(_provider())
        any_store.create_review_item(ReviewQueueItem(provider_id=created.id, reason="r"))

        any_store.clear_providers()

        assert any_store.list_providers() == []
        assert any_store.list_review_items() == []


class TestReviewItems:
    def test_create_and_get(self, any_store):
        item = any_store.create_review_item(
            ReviewQueueItem(provider_id="p1", reason="Low confidence", priority=Priority.HIGH)
        )

        fetched = any_store.get_review_item(item.id)

        assert fetched.provider_id == "p1"
        assert fetched.priority == Priority.HIGH
        assert fetched.status == ReviewStatus.PENDING
        assert fetched.resolved_at is None

    def test_item_may_reference_missing_provider(self, any_store):
        item = any_store.create_review_item(ReviewQueueItem(provider_id="gone", reason="r"))
        assert any_store.get_review_item(item.id) is not None

    def test_lookup_by_provider_returns_pending_only(self, any_store):
        resolved = any_store.create_review_item(
            ReviewQueueItem(provider_id="p1", reason="old", status=ReviewStatus.REJECTED)
        )
        assert any_store.get_review_item_by_provider_id("p1") is None

        pending = any_store.create_review_item(ReviewQueueItem(provider_id="p1", reason="new"))

        found = any_store.get_review_item_by_provider_id("p1")
        assert found.id == pending.id
        assert found.id != resolved.id

    def test_update(self, any_store):
        item = any_store.create_review_item(ReviewQueueItem(provider_id="p1", reason="r"))
        when = datetime(2024, 5, 1, 8, 0)

        updated = any_store.update_review_item(item.id, status="approved", resolved_at=when)

        assert updated.status == ReviewStatus.APPROVED
        assert any_store.get_review_item(item.id).resolved_at == when

    def test_update_unknown(self, any_store):
        assert any_store.update_review_item("missing", status="approved") is None

    def test_update_rejects_unknown_field(self, any_store):
        item = any_store.create_review_item(ReviewQueueItem(provider_id="p1", reason="r"))
        with pytest.raises(ValueError):
            any_store.update_review_item(item.id, colour="red")

    def test_listing_order_and_delete(self, any_store):
        ids = [
            any_store.create_review_item(ReviewQueueItem(provider_id=f"p{i}", reason="r")).id
            for i in range(3)
        ]
        assert [i.id for i in any_store.list_review_items()] == ids

        assert any_store.delete_review_item(ids[1]) is True
        assert any_store.delete_review_item(ids[1]) is False
        assert [i.id for i in any_store.list_review_items()] == [ids[0], ids[2]]


class TestEmailDrafts:
    def test_create_and_get(self, any_store):
        draft = any_store.create_email_draft(
            EmailDraft(provider_id="p1", subject="Hello", body="Body", recipient_email="a@b.com")
        )

        fetched = any_store.get_email_draft(draft.id)

        assert fetched.subject == "Hello"
        assert fetched.status == DraftStatus.DRAFT
        assert fetched.sent_at is None

    def test_unknown(self, any_store):
        assert any_store.get_email_draft("missing") is None


class TestEntityLocks:
    """Per-entity locks are released from the table once unused."""

    def test_table_empty_after_use(self, any_store):
        for n in range(100):
            with any_store.entity_lock(f"provider-{n}"):
                pass

        assert any_store._entity_locks == {}

    def test_reentrant(self, any_store):
        with any_store.entity_lock("p1"):
            with any_store.entity_lock("p1"):
                assert len(any_store._entity_locks) == 1
            assert "p1" in any_store._entity_locks

        assert any_store._entity_locks == {}

    def test_released_when_body_raises(self, any_store):
        with pytest.raises(RuntimeError):
            with any_store.entity_lock("p1"):
                raise RuntimeError("boom")

        assert any_store._entity_locks == {}

    def test_waiter_shares_lock_until_done(self, any_store):
        entered = threading.Event()
        release = threading.Event()
        order = []

        def holder():
            with any_store.entity_lock("p1"):
                entered.set()
                release.wait(timeout=5)
                order.append("holder")

        def waiter():
            entered.wait(timeout=5)
            with any_store.entity_lock("p1"):
                order.append("waiter")

        threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
        for t in threads:
            t.start()
        entered.wait(timeout=5)
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert order == ["holder", "waiter"]
        assert any_store._entity_locks == {}

    def test_review_queue_leaves_no_locks(self, any_store):
        queue = ReviewQueue(any_store)
        provider = any_store.create_provider(_provider())

        item = queue.admit(provider.id, classify(60, {}))
        queue.approve(item.id)
        any_store.delete_provider(provider.id)

        assert any_store._entity_locks == {}


class TestMemoryIsolation:
    def test_returned_copies_do_not_leak(self):
        store = MemoryStore()
        created = store.create_provider(_provider())

        created.first_name = "Changed"
        store.get_provider(created.id).last_name = "Changed"

        fetched = store.get_provider(created.id)
        assert fetched.first_name == "Mary"
        assert fetched.last_name == "Johnson"


class TestSqlPersistence:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "nested" / "providers.db"
        store = SqlStore(path)
        created = store.create_provider(_provider())
        store.close()

        reopened = SqlStore(path)
        try:
            assert reopened.get_provider(created.id).npi == "1234567890"
        finally:
            reopened.close()
