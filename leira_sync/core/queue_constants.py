"""Persisted keys and queue protocol constants (hardcoded, not configurable)."""

from __future__ import annotations

# Logical storage keys
SYNC_QUEUE_KEY = "syncQueue"
BOUNDED_QUEUE_KEY = "boundedSyncQueue"
CURRENT_OPERATOR_KEY = "currentOperator"
LAST_SYNC_KEY = "lastSyncTimestamp"

# Bounded queue defaults
DEFAULT_CAPACITY = 100
DEFAULT_MAX_ITEM_BYTES = 50 * 1024  # 50 KiB
DEFAULT_MAX_ATTEMPTS = 3
DRAIN_BATCH_SIZE = 10
DRAIN_BATCH_DELAY_SECONDS = 0.5

# Body key used by the bounded queue's batch submissions
DRAIN_ITEMS_KEY = "items"
