"""Durable sync queue.

The queue is one JSON array persisted under a well-known key. It is always
read and written wholesale, so every read-modify-write runs inside the
queue's lock; without it, two producers appending at the same time could
each write back a list missing the other's entry.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from leira_sync.core.errors import QueueCorruptionError
from leira_sync.core.locking import QueueLock
from leira_sync.core.models import QueueEntry, QueueStatus, RecordType
from leira_sync.core.queue_constants import SYNC_QUEUE_KEY

if TYPE_CHECKING:
    from leira_sync.ports.storage import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


class DurableQueue:
    """Ordered, persisted list of pending sync entries.

    Insertion order is preserved. A corrupt persisted document reads as an
    empty queue (the entries are lost, the app keeps working).
    """

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        key: str = SYNC_QUEUE_KEY,
        lock: QueueLock | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            store: Key-value store holding the serialized queue.
            key: Storage key of the queue document.
            lock: Lock serializing mutations. Defaults to an in-process lock.
        """
        self._store = store
        self._key = key
        self._lock = lock or QueueLock()

    @property
    def key(self) -> str:
        return self._key

    # =========================================================================
    # Public API
    # =========================================================================

    def enqueue(self, record_type: RecordType | str, payload: Any) -> QueueEntry:
        """Snapshot a payload into a new entry and append it."""
        entry = QueueEntry.create(record_type, payload)
        self.append(entry)
        return entry

    def append(self, entry: QueueEntry) -> None:
        """Append an entry at the tail, preserving order."""
        with self._lock:
            entries = self.read_all()
            entries.append(entry)
            self._write(entries)
            total = len(entries)
        logger.info("Queued %s entry %s (total in %s: %d)", entry.type, entry.id, self._key, total)

    def read_all(self) -> list[QueueEntry]:
        """Return all entries in insertion order ([] if absent or corrupt)."""
        with self._lock:
            try:
                return self._load()
            except QueueCorruptionError as e:
                logger.error("%s; treating queue as empty", e)
                return []

    def replace(self, entries: Iterable[QueueEntry]) -> None:
        """Overwrite the persisted queue wholesale."""
        with self._lock:
            self._write(list(entries))

    def clear(self) -> None:
        """Remove the persisted queue entirely."""
        with self._lock:
            self._store.remove(self._key)
        logger.info("Queue %s cleared", self._key)

    def size(self) -> int:
        return len(self.read_all())

    def remove(self, entry_ids: Iterable[str]) -> int:
        """Remove entries by id, keeping everything else in order.

        Runs as one locked read-modify-write against the current persisted
        state, so entries appended after the caller took its snapshot are
        never lost. When nothing remains the persisted key is removed.

        Args:
            entry_ids: Ids of the entries to remove.

        Returns:
            Number of entries actually removed.
        """
        ids = set(entry_ids)
        if not ids:
            return 0
        with self._lock:
            entries = self.read_all()
            kept = [e for e in entries if e.id not in ids]
            removed = len(entries) - len(kept)
            if removed:
                if kept:
                    self._write(kept)
                else:
                    self._store.remove(self._key)
        return removed

    def update(self, mutate: Callable[[list[QueueEntry]], list[QueueEntry]]) -> list[QueueEntry]:
        """Apply a transformation to the current entries atomically.

        Args:
            mutate: Receives the current entries, returns the new list.

        Returns:
            The list that was persisted.
        """
        with self._lock:
            entries = mutate(self.read_all())
            if entries:
                self._write(entries)
            else:
                self._store.remove(self._key)
            return entries

    def status(self) -> QueueStatus:
        """Summarize the queue: totals, untried vs. failed entries, newest entry."""
        entries = self.read_all()
        pending = sum(1 for e in entries if e.attempt_count == 0)
        return QueueStatus(
            total=len(entries),
            pending=pending,
            with_errors=len(entries) - pending,
            last_entry=entries[-1] if entries else None,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def _load(self) -> list[QueueEntry]:
        raw = self._store.get(self._key)
        if raw is None or not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise QueueCorruptionError(self._key, f"invalid JSON ({e})") from e
        if not isinstance(data, list):
            raise QueueCorruptionError(self._key, f"expected a list, got {type(data).__name__}")

        entries: list[QueueEntry] = []
        for position, item in enumerate(data):
            try:
                entries.append(QueueEntry.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    "Discarding malformed entry at position %d of %s: %s",
                    position,
                    self._key,
                    e.errors()[0].get("msg", "invalid") if e.errors() else "invalid",
                )
        return entries

    def _write(self, entries: list[QueueEntry]) -> None:
        document = json.dumps([e.to_json_dict() for e in entries], ensure_ascii=False)
        self._store.set(self._key, document)
