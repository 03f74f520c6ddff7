"""Leira Sync - offline-first synchronization for composting-yard records."""

__version__ = "0.1.0"

# Re-export core components for convenience
from leira_sync.config import Settings, get_settings
from leira_sync.core import (
    ConfigurationError,
    EntryTooLargeError,
    LeiraSyncError,
    NoIdentityError,
    OfflineError,
    OperatorIdentity,
    PassResult,
    PassState,
    QueueEntry,
    RecordType,
    RemoteSubmissionError,
    StorageError,
    ValidationError,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "LeiraSyncError",
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    "OfflineError",
    "NoIdentityError",
    "RemoteSubmissionError",
    "EntryTooLargeError",
    # Models
    "RecordType",
    "QueueEntry",
    "OperatorIdentity",
    "PassState",
    "PassResult",
]
