"""Custom exceptions for leira-sync."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Prevents leaking full system paths in error messages which could
    expose sensitive directory structure information.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class LeiraSyncError(Exception):
    """Base exception for all leira-sync errors."""

    pass


class ConfigurationError(LeiraSyncError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(LeiraSyncError):
    """Raised when input validation fails."""

    pass


class StorageError(LeiraSyncError):
    """Raised when reading or writing the local key-value store fails."""

    pass


# =============================================================================
# Synchronization Errors
# =============================================================================


class OfflineError(LeiraSyncError):
    """Raised when the connectivity probe reports no network."""

    def __init__(self, message: str = "No network connectivity") -> None:
        super().__init__(message)


class NoIdentityError(LeiraSyncError):
    """Raised when no operator session is persisted."""

    def __init__(self, message: str = "No operator is logged in") -> None:
        super().__init__(message)


class RemoteSubmissionError(LeiraSyncError):
    """Raised when a remote endpoint rejects a batch or cannot be reached.

    Covers non-2xx responses, malformed response bodies, bodies carrying a
    top-level error field, and network failures (status_code is None).
    """

    def __init__(
        self,
        record_type: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.record_type = record_type
        self.status_code = status_code
        status = f"HTTP {status_code}" if status_code is not None else "network error"
        super().__init__(f"Remote submission failed for {record_type} ({status}): {message}")


class QueueCorruptionError(LeiraSyncError):
    """Raised when a persisted queue cannot be deserialized.

    Queue readers catch this and treat the queue as empty.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Persisted queue '{key}' is corrupt: {reason}")


class EntryTooLargeError(ValidationError):
    """Raised when a bounded-queue entry exceeds the per-entry size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Queue entry is {size} bytes (limit {limit})")


# =============================================================================
# Cross-Process Locking Error
# =============================================================================


class FileLockError(LeiraSyncError):
    """Raised when cross-process file lock cannot be acquired."""

    def __init__(
        self,
        lock_path: str,
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        safe_name = sanitize_path_for_error(lock_path)
        self.message = message or f"Failed to acquire file lock at {safe_name} after {timeout}s"
        super().__init__(self.message)
