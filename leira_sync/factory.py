"""Service factory for dependency injection and initialization.

Centralizes the wiring of the sync subsystem: one key-value store, the two
queues guarded by their own locks, the HTTP client, the dispatcher, the
orchestrator and the periodic trigger.

Usage:
    from leira_sync.factory import ServiceFactory

    factory = ServiceFactory(settings)
    services = factory.create_all()
    services.orchestrator.synchronize()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leira_sync.adapters.connectivity import SocketConnectivityProbe
from leira_sync.adapters.file_store import FileKeyValueStore
from leira_sync.adapters.remote_client import RemoteSyncClient
from leira_sync.config import Settings
from leira_sync.core.locking import QueueLock
from leira_sync.core.queue_constants import BOUNDED_QUEUE_KEY, SYNC_QUEUE_KEY
from leira_sync.services.bounded_queue import BoundedQueue
from leira_sync.services.dispatcher import RecordTypeDispatcher
from leira_sync.services.orchestrator import SyncOrchestrator
from leira_sync.services.periodic import PeriodicSyncTrigger
from leira_sync.services.queue import DurableQueue
from leira_sync.services.session import OperatorSession

if TYPE_CHECKING:
    from leira_sync.ports.storage import (
        ConnectivityProbeProtocol,
        KeyValueStoreProtocol,
        RemoteClientProtocol,
    )

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Container for all initialized services.

    Attributes:
        store: Key-value store backing every persisted record.
        queue: Durable sync queue drained by the orchestrator.
        bounded_queue: Capped queue drained in batches.
        session: Current-operator session.
        probe: Connectivity probe.
        client: HTTP client for the sync functions.
        dispatcher: Routes entries to per-type submission routines.
        orchestrator: Runs synchronization passes.
        trigger: Periodic background trigger (not started).
    """

    store: KeyValueStoreProtocol
    queue: DurableQueue
    bounded_queue: BoundedQueue
    session: OperatorSession
    probe: ConnectivityProbeProtocol
    client: RemoteClientProtocol
    dispatcher: RecordTypeDispatcher
    orchestrator: SyncOrchestrator
    trigger: PeriodicSyncTrigger


class ServiceFactory:
    """Factory for creating and wiring all services.

    Example:
        factory = ServiceFactory(settings, probe=StaticConnectivityProbe(True))
        services = factory.create_all()
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStoreProtocol | None = None,
        probe: ConnectivityProbeProtocol | None = None,
        client: RemoteClientProtocol | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings.
            store: Optional store override for testing.
            probe: Optional connectivity probe override (CLI flags, tests).
            client: Optional HTTP client override for testing.
        """
        self._settings = settings
        self._injected_store = store
        self._injected_probe = probe
        self._injected_client = client

    def create_store(self) -> FileKeyValueStore:
        self._settings.data_path.mkdir(parents=True, exist_ok=True)
        return FileKeyValueStore(self._settings.data_path)

    def create_lock(self, store: KeyValueStoreProtocol, key: str) -> QueueLock:
        """Create the lock guarding one queue key.

        The cross-process file lock is only used when the store is file
        backed and file locking is enabled.
        """
        if self._settings.filelock_enabled and isinstance(store, FileKeyValueStore):
            return QueueLock(store.lock_path_for(key), timeout=self._settings.filelock_timeout)
        return QueueLock()

    def create_probe(self) -> SocketConnectivityProbe:
        return SocketConnectivityProbe.for_url(
            self._settings.remote_base_url,
            host=self._settings.connectivity_host,
            port=self._settings.connectivity_port,
            timeout=self._settings.connectivity_timeout_seconds,
        )

    def create_client(self) -> RemoteSyncClient:
        return RemoteSyncClient(
            base_url=self._settings.remote_base_url,
            endpoint_prefix=self._settings.endpoint_prefix,
            timeout=self._settings.request_timeout_seconds,
        )

    def create_bounded_queue(
        self, store: KeyValueStoreProtocol, client: RemoteClientProtocol
    ) -> BoundedQueue:
        """Create the bounded queue from the bounded_* settings."""
        return BoundedQueue(
            store,
            client,
            key=BOUNDED_QUEUE_KEY,
            lock=self.create_lock(store, BOUNDED_QUEUE_KEY),
            capacity=self._settings.bounded_queue_capacity,
            max_item_bytes=self._settings.bounded_max_item_bytes,
            max_attempts=self._settings.bounded_max_attempts,
            batch_size=self._settings.bounded_batch_size,
            batch_delay=self._settings.bounded_batch_delay_seconds,
            persist_per_batch=self._settings.bounded_persist_per_batch,
        )

    def create_all(self) -> ServiceContainer:
        """Create all services with proper dependency wiring.

        Returns:
            ServiceContainer with all services initialized.
        """
        store = self._injected_store if self._injected_store is not None else self.create_store()
        probe = self._injected_probe if self._injected_probe is not None else self.create_probe()
        client = (
            self._injected_client if self._injected_client is not None else self.create_client()
        )

        queue = DurableQueue(store, key=SYNC_QUEUE_KEY, lock=self.create_lock(store, SYNC_QUEUE_KEY))
        bounded_queue = self.create_bounded_queue(store, client)
        session = OperatorSession(store)
        dispatcher = RecordTypeDispatcher.with_default_routines(client)

        orchestrator = SyncOrchestrator(
            queue=queue,
            dispatcher=dispatcher,
            probe=probe,
            session=session,
            store=store,
            clear_policy=self._settings.clear_policy,
            auto_flush_on_enqueue=self._settings.auto_flush_on_enqueue,
        )
        trigger = PeriodicSyncTrigger(
            orchestrator,
            probe,
            interval_seconds=self._settings.sync_interval_seconds,
            sync_on_start=self._settings.sync_on_start,
        )
        logger.debug(
            "Services wired (data_path=%s, remote=%s, policy=%s)",
            self._settings.data_path,
            self._settings.remote_base_url,
            self._settings.clear_policy,
        )

        return ServiceContainer(
            store=store,
            queue=queue,
            bounded_queue=bounded_queue,
            session=session,
            probe=probe,
            client=client,
            dispatcher=dispatcher,
            orchestrator=orchestrator,
            trigger=trigger,
        )
