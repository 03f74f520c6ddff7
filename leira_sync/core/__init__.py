"""Core components for leira-sync."""

from leira_sync.core.errors import (
    ConfigurationError,
    EntryTooLargeError,
    FileLockError,
    LeiraSyncError,
    NoIdentityError,
    OfflineError,
    QueueCorruptionError,
    RemoteSubmissionError,
    StorageError,
    ValidationError,
)
from leira_sync.core.models import (
    DrainResult,
    HttpReply,
    ItemDetail,
    OperatorIdentity,
    PassResult,
    PassState,
    QueueEntry,
    QueueStatus,
    RecordType,
    RemoteResponse,
    SyncOutcome,
)
from leira_sync.core.utils import epoch_millis, isoformat_utc, utc_now

__all__ = [
    # Errors
    "LeiraSyncError",
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    "OfflineError",
    "NoIdentityError",
    "RemoteSubmissionError",
    "QueueCorruptionError",
    "EntryTooLargeError",
    "FileLockError",
    # Models
    "RecordType",
    "QueueEntry",
    "OperatorIdentity",
    "ItemDetail",
    "RemoteResponse",
    "PassState",
    "SyncOutcome",
    "PassResult",
    "DrainResult",
    "HttpReply",
    "QueueStatus",
    # Utilities
    "utc_now",
    "epoch_millis",
    "isoformat_utc",
]
