"""Infrastructure adapters for leira-sync."""

from leira_sync.adapters.connectivity import SocketConnectivityProbe, StaticConnectivityProbe
from leira_sync.adapters.file_store import FileKeyValueStore
from leira_sync.adapters.remote_client import RemoteSyncClient

__all__ = [
    "FileKeyValueStore",
    "SocketConnectivityProbe",
    "StaticConnectivityProbe",
    "RemoteSyncClient",
]
