"""Port interfaces (protocols) for leira-sync."""

from leira_sync.ports.storage import (
    ConnectivityProbeProtocol,
    KeyValueStoreProtocol,
    RemoteClientProtocol,
)

__all__ = [
    "KeyValueStoreProtocol",
    "ConnectivityProbeProtocol",
    "RemoteClientProtocol",
]
