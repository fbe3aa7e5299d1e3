"""Tests for the queue store."""

import json

import pytest
from pydantic import ValidationError

from sendqueue.queue.errors import CapacityExceeded, PersistenceCorrupt
from sendqueue.queue.store import QueueStore, decode_items, encode_items
from sendqueue.queue.types import MessagePayload, QueueItem


def _item(id: str, status: str = "pending", attempts: int = 0, last_error: str | None = None) -> QueueItem:
    return QueueItem(
        id=id,
        destination="chan-1",
        payload=MessagePayload(content=f"message {id}"),
        status=status,
        attempts=attempts,
        enqueued_at="2024-01-01T00:00:00+00:00",
        last_error=last_error,
    )


@pytest.fixture
def store(db) -> QueueStore:
    return QueueStore(db.state_repo)


class TestAppend:
    def test_preserves_insertion_order(self, store):
        for id in ("a", "b", "c"):
            store.append(_item(id), max_size=10)
        assert [item.id for item in store.snapshot()] == ["a", "b", "c"]

    def test_returns_new_length(self, store):
        assert store.append(_item("a"), max_size=10) == 1
        assert store.append(_item("b"), max_size=10) == 2

    def test_capacity_exceeded_leaves_queue_untouched(self, store, db):
        store.append(_item("a"), max_size=1)
        saved = db.state_repo.get_state("message_queue")
        with pytest.raises(CapacityExceeded) as exc_info:
            store.append(_item("b"), max_size=1)
        assert exc_info.value.max_queue_size == 1
        assert [item.id for item in store.snapshot()] == ["a"]
        assert db.state_repo.get_state("message_queue") == saved

    def test_persists_on_append(self, store, db):
        store.append(_item("a"), max_size=10)
        stored = json.loads(db.state_repo.get_state("message_queue"))
        assert [entry["id"] for entry in stored] == ["a"]


class TestSnapshot:
    def test_snapshot_is_a_copy(self, store):
        store.append(_item("a"), max_size=10)
        snap = store.snapshot()
        snap.clear()
        assert len(store) == 1

    def test_items_are_immutable(self, store):
        store.append(_item("a"), max_size=10)
        item = store.snapshot()[0]
        with pytest.raises(ValidationError):
            item.status = "failed"  # type: ignore[misc]
        assert store.get("a").status == "pending"


class TestClaimNextPending:
    def test_claims_first_pending_without_counting_attempt(self, store):
        store.append(_item("a", status="failed", attempts=1, last_error="boom"), max_size=10)
        store.append(_item("b"), max_size=10)
        claimed = store.claim_next_pending()
        assert claimed.id == "b"
        assert claimed.status == "sending"
        assert claimed.attempts == 0
        # Failed item keeps its position
        assert [item.id for item in store.snapshot()] == ["a", "b"]

    def test_refuses_while_an_item_is_sending(self, store):
        store.append(_item("a"), max_size=10)
        store.append(_item("b"), max_size=10)
        assert store.claim_next_pending().id == "a"
        assert store.claim_next_pending() is None
        statuses = [item.status for item in store.snapshot()]
        assert statuses.count("sending") == 1

    def test_none_when_nothing_pending(self, store):
        store.append(_item("a", status="failed", attempts=1), max_size=10)
        assert store.claim_next_pending() is None


class TestUpdateStatus:
    def test_failed_records_error(self, store):
        store.append(_item("a"), max_size=10)
        updated = store.update_status("a", "failed", "timeout")
        assert updated.status == "failed"
        assert updated.last_error == "timeout"

    def test_error_cleared_when_not_failed(self, store):
        store.append(_item("a", status="failed", attempts=1, last_error="timeout"), max_size=10)
        updated = store.update_status("a", "pending")
        assert updated.last_error is None
        assert updated.attempts == 1

    def test_unknown_id_returns_none(self, store):
        assert store.update_status("missing", "pending") is None

    def test_rejects_unknown_status(self, store):
        store.append(_item("a"), max_size=10)
        with pytest.raises(ValueError):
            store.update_status("a", "sent")  # type: ignore[arg-type]


class TestRecordFailure:
    def test_counts_attempt_and_records_error(self, store):
        store.append(_item("a"), max_size=10)
        store.claim_next_pending()
        failed = store.record_failure("a", "rate limited")
        assert failed.status == "failed"
        assert failed.attempts == 1
        assert failed.last_error == "rate limited"
        assert store.record_failure("a", "again").attempts == 2

    def test_unknown_id_returns_none(self, store):
        assert store.record_failure("missing", "boom") is None


class TestRemoveAndClear:
    def test_remove(self, store):
        store.append(_item("a"), max_size=10)
        store.append(_item("b"), max_size=10)
        assert store.remove("a") is True
        assert [item.id for item in store.snapshot()] == ["b"]

    def test_remove_absent_is_noop(self, store):
        store.append(_item("a"), max_size=10)
        assert store.remove("missing") is False
        assert store.remove("a") is True
        assert store.remove("a") is False
        assert len(store) == 0

    def test_clear_persists(self, store, db):
        store.append(_item("a"), max_size=10)
        store.append(_item("b"), max_size=10)
        assert store.clear() == 2
        assert len(store) == 0
        assert json.loads(db.state_repo.get_state("message_queue")) == []


class TestPersistence:
    def test_round_trip_mixed_statuses(self, db):
        original = [
            _item("a"),
            _item("b", status="sending", attempts=1),
            _item("c", status="failed", attempts=2, last_error="rate limited"),
        ]
        first = QueueStore(db.state_repo)
        for item in original:
            first.append(item, max_size=10)

        second = QueueStore(db.state_repo)
        second.load()
        loaded = second.snapshot()

        assert loaded[0] == original[0]
        assert loaded[1] == original[1].model_copy(update={"status": "pending"})
        assert loaded[2] == original[2]

    def test_missing_state_loads_empty(self, store):
        store.load()
        assert store.snapshot() == []

    @pytest.mark.parametrize("raw", ["not json", "{}", '[{"id": "x"}]', '[{"status": "weird"}]'])
    def test_corrupt_state_loads_empty(self, db, raw):
        store = QueueStore(db.state_repo)
        store.append(_item("stale"), max_size=10)
        db.state_repo.set_state("message_queue", raw)
        store.load()
        assert store.snapshot() == []

    def test_decode_raises_persistence_corrupt(self):
        with pytest.raises(PersistenceCorrupt):
            decode_items("[1, 2, 3]")

    def test_encode_decode_normalizes_sending(self):
        decoded = decode_items(encode_items([_item("a", status="sending", attempts=2)]))
        assert decoded[0].status == "pending"
        assert decoded[0].attempts == 2

    def test_separate_keys_are_independent(self, db):
        one = QueueStore(db.state_repo, key="message_queue:one")
        two = QueueStore(db.state_repo, key="message_queue:two")
        one.append(_item("a"), max_size=10)
        two.load()
        assert two.snapshot() == []


class TestOnChange:
    def test_listener_called_on_mutation(self, db):
        calls = []
        store = QueueStore(db.state_repo, on_change=lambda: calls.append(1))
        store.append(_item("a"), max_size=10)
        store.update_status("a", "failed", "x")
        store.remove("a")
        assert len(calls) == 3

    def test_listener_failure_does_not_propagate(self, db):
        def boom() -> None:
            raise RuntimeError("render failed")

        store = QueueStore(db.state_repo, on_change=boom)
        store.append(_item("a"), max_size=10)
        assert len(store) == 1
