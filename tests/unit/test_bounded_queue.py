"""Tests for the bounded queue: eviction, size ceiling and batched drain."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from leira_sync.adapters.file_store import FileKeyValueStore
from leira_sync.core.errors import EntryTooLargeError, RemoteSubmissionError, ValidationError
from leira_sync.core.models import HttpReply, QueueEntry, RecordType
from leira_sync.core.queue_constants import BOUNDED_QUEUE_KEY
from leira_sync.services.bounded_queue import BoundedQueue, serialized_size

ENDPOINT = "sync-monitoramento"


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.post_json.return_value = HttpReply(status_code=200, body={"sucesso": True})
    return client


@pytest.fixture
def sleep() -> MagicMock:
    return MagicMock()


def make_queue(
    store: FileKeyValueStore, client: MagicMock, sleep: MagicMock, **kwargs: object
) -> BoundedQueue:
    params: dict = {"capacity": 100, "batch_size": 10, "batch_delay": 0.5, "sleep": sleep}
    params.update(kwargs)
    return BoundedQueue(store, client, **params)


# =============================================================================
# Construction and append
# =============================================================================


@pytest.mark.unit
class TestAppend:
    def test_rejects_bad_parameters(self, store: FileKeyValueStore, client: MagicMock) -> None:
        with pytest.raises(ValueError):
            BoundedQueue(store, client, capacity=0)
        with pytest.raises(ValueError):
            BoundedQueue(store, client, max_attempts=0)
        with pytest.raises(ValueError):
            BoundedQueue(store, client, batch_size=0)

    def test_uses_its_own_key(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep)
        queue.enqueue(RecordType.MATERIAL, {"peso": 1})
        assert queue.key == BOUNDED_QUEUE_KEY
        assert store.get(BOUNDED_QUEUE_KEY) is not None

    def test_eviction_at_capacity(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, capacity=3)
        entries = [queue.enqueue(RecordType.MONITORING, {"n": i}) for i in range(3)]

        newest = queue.enqueue(RecordType.MONITORING, {"n": 3})

        ids = [e.id for e in queue.read_all()]
        assert len(ids) == 3
        assert entries[0].id not in ids
        assert ids == [entries[1].id, entries[2].id, newest.id]

    def test_size_never_exceeds_capacity(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, capacity=5)
        for i in range(40):
            queue.enqueue(RecordType.ENRICHMENT, {"n": i})
            assert queue.size() <= 5
        assert [e.payload["n"] for e in queue.read_all()] == [35, 36, 37, 38, 39]

    def test_rejects_oversize_entry(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, max_item_bytes=200)
        with pytest.raises(EntryTooLargeError) as exc_info:
            queue.enqueue(RecordType.MATERIAL, {"observacao": "x" * 500})
        assert exc_info.value.limit == 200
        assert exc_info.value.size > 200
        assert queue.size() == 0

    def test_size_measured_in_utf8_bytes(self) -> None:
        ascii_entry = QueueEntry.create(RecordType.MATERIAL, {"o": "a" * 10}, enqueued_at=1)
        accented = QueueEntry.model_validate(
            {**ascii_entry.to_json_dict(), "payload": {"o": "ã" * 10}}
        )
        assert serialized_size(accented) == serialized_size(ascii_entry) + 10

    def test_rejects_type_not_accepted(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep)
        with pytest.raises(ValidationError):
            queue.enqueue(RecordType.PILE, {"id": "L1"})

    def test_any_type_when_unrestricted(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, allowed_types=None)
        queue.enqueue(RecordType.PILE, {"id": "L1"})
        assert queue.size() == 1


# =============================================================================
# Drain
# =============================================================================


@pytest.mark.unit
class TestDrain:
    def test_empty_queue_makes_no_requests(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        result = make_queue(store, client, sleep).drain(ENDPOINT)
        assert (result.succeeded, result.failed, result.dropped) == (0, 0, 0)
        client.post_json.assert_not_called()

    def test_success_removes_everything(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep)
        for i in range(25):
            queue.enqueue(RecordType.MONITORING, {"n": i})

        result = queue.drain(ENDPOINT)

        assert result.succeeded == 25
        assert result.failed == 0
        assert client.post_json.call_count == 3
        assert queue.size() == 0
        assert store.get(BOUNDED_QUEUE_KEY) is None

    def test_batch_body_and_sizes(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, batch_size=4)
        for i in range(10):
            queue.enqueue(RecordType.MONITORING, {"n": i})

        queue.drain(ENDPOINT)

        sizes = []
        for call in client.post_json.call_args_list:
            endpoint, body = call.args
            assert endpoint == ENDPOINT
            sizes.append(len(body["items"]))
        assert sizes == [4, 4, 2]
        first_item = client.post_json.call_args_list[0].args[1]["items"][0]
        assert first_item["payload"] == {"n": 0}
        assert first_item["attemptCount"] == 0

    def test_sleeps_between_batches_only(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, batch_size=10, batch_delay=0.5)
        for i in range(30):
            queue.enqueue(RecordType.MONITORING, {"n": i})

        queue.drain(ENDPOINT)

        assert sleep.call_count == 2
        sleep.assert_called_with(0.5)

    def test_failed_batch_increments_attempts(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        client.post_json.side_effect = [
            HttpReply(status_code=200, body={}),
            HttpReply(status_code=503, text="unavailable"),
        ]
        queue = make_queue(store, client, sleep, batch_size=2)
        for i in range(4):
            queue.enqueue(RecordType.MONITORING, {"n": i})

        result = queue.drain(ENDPOINT)

        assert result.succeeded == 2
        assert result.failed == 2
        remaining = queue.read_all()
        assert [e.payload["n"] for e in remaining] == [2, 3]
        assert [e.attempt_count for e in remaining] == [1, 1]

    def test_network_error_counts_as_failure(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        client.post_json.side_effect = RemoteSubmissionError(ENDPOINT, "connection refused")
        queue = make_queue(store, client, sleep)
        queue.enqueue(RecordType.MATERIAL, {})

        result = queue.drain(ENDPOINT)

        assert result.failed == 1
        assert queue.read_all()[0].attempt_count == 1

    def test_attempt_exhaustion_drops_only_exhausted(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        client.post_json.return_value = HttpReply(status_code=500, body={"erro": "x"})
        queue = make_queue(store, client, sleep, max_attempts=3)
        veteran = queue.enqueue(RecordType.MATERIAL, {"n": "old"})
        queue.drain(ENDPOINT)
        queue.drain(ENDPOINT)
        newcomer = queue.enqueue(RecordType.MATERIAL, {"n": "new"})

        result = queue.drain(ENDPOINT)

        assert result.dropped == 1
        remaining = queue.read_all()
        assert [e.id for e in remaining] == [newcomer.id]
        assert remaining[0].attempt_count == 1
        assert veteran.id not in {e.id for e in remaining}

    def test_entries_appended_during_drain_survive(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, batch_size=1)
        queue.enqueue(RecordType.MATERIAL, {"n": 0})
        queue.enqueue(RecordType.MATERIAL, {"n": 1})
        late: list[QueueEntry] = []
        sleep.side_effect = lambda _delay: late.append(
            queue.enqueue(RecordType.MATERIAL, {"n": "late"})
        )

        queue.drain(ENDPOINT)

        assert [e.id for e in queue.read_all()] == [late[0].id]

    def test_persist_once_by_default(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, batch_size=1)
        for i in range(3):
            queue.enqueue(RecordType.MATERIAL, {"n": i})
        snapshots: list[int] = []
        sleep.side_effect = lambda _delay: snapshots.append(
            len(json.loads(store.get(BOUNDED_QUEUE_KEY) or "[]"))
        )

        queue.drain(ENDPOINT)

        assert snapshots == [3, 3]
        assert queue.size() == 0

    def test_persist_per_batch(
        self, store: FileKeyValueStore, client: MagicMock, sleep: MagicMock
    ) -> None:
        queue = make_queue(store, client, sleep, batch_size=1, persist_per_batch=True)
        for i in range(3):
            queue.enqueue(RecordType.MATERIAL, {"n": i})
        snapshots: list[int] = []
        sleep.side_effect = lambda _delay: snapshots.append(
            len(json.loads(store.get(BOUNDED_QUEUE_KEY) or "[]"))
        )

        queue.drain(ENDPOINT)

        assert snapshots == [2, 1]
        assert queue.size() == 0
