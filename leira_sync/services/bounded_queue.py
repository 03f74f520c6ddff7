"""Bounded sync queue with batched draining.

A capped variant of DurableQueue used for material, monitoring and
enrichment records. Two properties are deliberately lossy:

- When the queue is full, the oldest entry is evicted to make room for the
  new one (strict FIFO bound).
- An entry whose failed-attempt count reaches ``max_attempts`` is dropped
  instead of being retried again.

Both are logged at WARNING/ERROR so the loss is visible.

Drain protocol::

    snapshot ──► [batch 0] ──POST──► 2xx?  remove batch
                     │                 no?  attemptCount += 1, drop exhausted
                  sleep(delay)
                     ▼
                 [batch 1] ...
                     ▼
              persist once (or after every batch with persist_per_batch)
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from leira_sync.core.errors import EntryTooLargeError, RemoteSubmissionError, ValidationError
from leira_sync.core.locking import QueueLock
from leira_sync.core.models import DrainResult, QueueEntry, RecordType
from leira_sync.core.queue_constants import (
    BOUNDED_QUEUE_KEY,
    DEFAULT_CAPACITY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_ITEM_BYTES,
    DRAIN_BATCH_DELAY_SECONDS,
    DRAIN_BATCH_SIZE,
    DRAIN_ITEMS_KEY,
)
from leira_sync.services.queue import DurableQueue

if TYPE_CHECKING:
    from leira_sync.ports.storage import KeyValueStoreProtocol, RemoteClientProtocol

logger = logging.getLogger(__name__)

DEFAULT_BOUNDED_TYPES = frozenset(
    {RecordType.MATERIAL, RecordType.MONITORING, RecordType.ENRICHMENT}
)


def serialized_size(entry: QueueEntry) -> int:
    """Size of an entry's JSON serialization in UTF-8 bytes."""
    return len(json.dumps(entry.to_json_dict(), ensure_ascii=False).encode("utf-8"))


class BoundedQueue(DurableQueue):
    """Size-capped queue that drains itself to an endpoint in batches."""

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        client: RemoteClientProtocol,
        key: str = BOUNDED_QUEUE_KEY,
        lock: QueueLock | None = None,
        capacity: int = DEFAULT_CAPACITY,
        max_item_bytes: int = DEFAULT_MAX_ITEM_BYTES,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        batch_size: int = DRAIN_BATCH_SIZE,
        batch_delay: float = DRAIN_BATCH_DELAY_SECONDS,
        persist_per_batch: bool = False,
        allowed_types: Iterable[RecordType] | None = DEFAULT_BOUNDED_TYPES,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the bounded queue.

        Args:
            store: Key-value store holding the serialized queue.
            client: HTTP client used by drain().
            key: Storage key of the queue document.
            lock: Lock serializing mutations.
            capacity: Maximum number of entries kept.
            max_item_bytes: Maximum serialized size of one entry.
            max_attempts: Failed drains after which an entry is dropped.
            batch_size: Entries per POST during drain().
            batch_delay: Seconds to pause between batches.
            persist_per_batch: Persist after each batch rather than once at
                the end of the drain. Survives a crash mid-drain at the cost
                of one write per batch.
            allowed_types: Record types accepted, or None to accept any.
            sleep: Sleep function (tests pass a no-op).
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        super().__init__(store, key=key, lock=lock)
        self._client = client
        self._capacity = capacity
        self._max_item_bytes = max_item_bytes
        self._max_attempts = max_attempts
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._persist_per_batch = persist_per_batch
        self._allowed_types = frozenset(allowed_types) if allowed_types is not None else None
        self._sleep = sleep or time.sleep

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def append(self, entry: QueueEntry) -> None:
        """Append an entry, evicting the oldest ones while at capacity.

        Raises:
            EntryTooLargeError: If the entry's serialized size exceeds
                max_item_bytes.
            ValidationError: If the entry's type is not accepted here.
        """
        if self._allowed_types is not None and entry.record_type not in self._allowed_types:
            raise ValidationError(f"Record type '{entry.type}' is not accepted by the bounded queue")

        size = serialized_size(entry)
        if size > self._max_item_bytes:
            logger.warning(
                "Rejecting %s entry %s: %d bytes exceeds limit of %d",
                entry.type,
                entry.id,
                size,
                self._max_item_bytes,
            )
            raise EntryTooLargeError(size=size, limit=self._max_item_bytes)

        with self._lock:
            entries = self.read_all()
            while len(entries) >= self._capacity:
                evicted = entries.pop(0)
                logger.warning(
                    "Bounded queue full (%d); evicting oldest entry %s (%s)",
                    self._capacity,
                    evicted.id,
                    evicted.type,
                )
            entries.append(entry)
            self._write(entries)
            total = len(entries)
        logger.info("Queued %s entry %s (total in %s: %d)", entry.type, entry.id, self.key, total)

    def drain(self, endpoint_name: str) -> DrainResult:
        """Submit the queue to an endpoint in fixed-size batches.

        Successful batches are removed; failed batches have their entries'
        attempt counts incremented, and entries reaching max_attempts are
        dropped. Entries appended while the drain runs are kept untouched.

        Args:
            endpoint_name: Sync function receiving ``{"items": [...]}``.

        Returns:
            DrainResult with the number of entries delivered, failed and dropped.
        """
        snapshot = self.read_all()
        result = DrainResult()
        if not snapshot:
            logger.info("Bounded queue empty; nothing to drain")
            return result

        batches = [
            snapshot[i : i + self._batch_size] for i in range(0, len(snapshot), self._batch_size)
        ]
        logger.info(
            "Draining %d entries to %s in %d batches", len(snapshot), endpoint_name, len(batches)
        )

        delivered: set[str] = set()
        failed: set[str] = set()

        for index, batch in enumerate(batches):
            batch_ids = {e.id for e in batch}
            if self._submit_batch(endpoint_name, batch, index + 1):
                result.succeeded += len(batch)
                delivered |= batch_ids
            else:
                result.failed += len(batch)
                failed |= batch_ids

            if self._persist_per_batch:
                result.dropped += self._apply(delivered, failed)
                delivered, failed = set(), set()

            if index < len(batches) - 1:
                self._sleep(self._batch_delay)

        if not self._persist_per_batch:
            result.dropped += self._apply(delivered, failed)

        logger.info(
            "Drain finished: %d delivered, %d failed, %d dropped",
            result.succeeded,
            result.failed,
            result.dropped,
        )
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _submit_batch(self, endpoint_name: str, batch: list[QueueEntry], number: int) -> bool:
        body: dict[str, Any] = {DRAIN_ITEMS_KEY: [e.to_json_dict() for e in batch]}
        logger.debug("Sending batch %d (%d entries) to %s", number, len(batch), endpoint_name)
        try:
            reply = self._client.post_json(endpoint_name, body)
        except RemoteSubmissionError as e:
            logger.error("Batch %d to %s failed: %s", number, endpoint_name, e)
            return False
        if not reply.ok:
            logger.error(
                "Batch %d to %s rejected with HTTP %d", number, endpoint_name, reply.status_code
            )
            return False
        return True

    def _apply(self, delivered: set[str], failed: set[str]) -> int:
        """Persist one round of batch outcomes. Returns the number dropped."""
        if not delivered and not failed:
            return 0

        dropped = 0

        def mutate(entries: list[QueueEntry]) -> list[QueueEntry]:
            nonlocal dropped
            kept: list[QueueEntry] = []
            for entry in entries:
                if entry.id in delivered:
                    continue
                if entry.id in failed:
                    entry = entry.with_failed_attempt()
                    if entry.attempt_count >= self._max_attempts:
                        dropped += 1
                        logger.error(
                            "Entry %s (%s) exceeded %d attempts; dropping it",
                            entry.id,
                            entry.type,
                            self._max_attempts,
                        )
                        continue
                kept.append(entry)
            return kept

        self.update(mutate)
        return dropped
