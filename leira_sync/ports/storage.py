"""Protocol interfaces for local persistence and the network.

These protocols define the contracts between the sync services and
infrastructure. Using typing.Protocol enables structural subtyping, so tests
can pass MagicMocks or small fakes in place of the file store, the HTTP
client and the connectivity probe.
"""

from __future__ import annotations

from typing import Any, Protocol

from leira_sync.core.models import HttpReply


class KeyValueStoreProtocol(Protocol):
    """String values under well-known keys (the device's local storage)."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent.

        Raises:
            StorageError: If the backing store cannot be read.
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one atomically.

        Raises:
            StorageError: If the backing store cannot be written.
        """
        ...

    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op."""
        ...


class ConnectivityProbeProtocol(Protocol):
    """Reports current network reachability."""

    def is_online(self) -> bool:
        """Return True only when the network is known to be reachable.

        Implementations must never raise: any failure to determine state
        reports False.
        """
        ...


class RemoteClientProtocol(Protocol):
    """Posts JSON bodies to named sync functions."""

    def post_json(self, function_name: str, body: dict[str, Any]) -> HttpReply:
        """POST a JSON body to a sync function.

        Args:
            function_name: Function name, e.g. "sync-leiras".
            body: JSON-serializable request body.

        Returns:
            The HTTP status with the parsed (or raw) response body.

        Raises:
            RemoteSubmissionError: On network failure or timeout.
        """
        ...
