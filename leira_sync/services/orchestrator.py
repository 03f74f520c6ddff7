"""Sync orchestrator.

Runs one synchronization pass over the durable queue:

    CheckingConnectivity -> LoadingIdentity -> Dispatching -> Finalizing

A pass never raises for remote or precondition failures; the outcome is a
PassResult plus log output. Queue entries are removed by id under the queue
lock, so producers appending during a pass never lose their entries.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Any, get_args

from leira_sync.config import ClearPolicy
from leira_sync.core.errors import (
    ConfigurationError,
    LeiraSyncError,
    NoIdentityError,
    OfflineError,
    ValidationError,
)
from leira_sync.core.models import (
    OperatorIdentity,
    PassResult,
    PassState,
    QueueEntry,
    QueueStatus,
    RecordType,
    SyncOutcome,
)
from leira_sync.core.queue_constants import LAST_SYNC_KEY
from leira_sync.core.tracing import pass_context
from leira_sync.core.utils import isoformat_utc

if TYPE_CHECKING:
    from leira_sync.ports.storage import ConnectivityProbeProtocol, KeyValueStoreProtocol
    from leira_sync.services.dispatcher import RecordTypeDispatcher
    from leira_sync.services.queue import DurableQueue
    from leira_sync.services.session import OperatorSession

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Drives synchronization passes over the durable queue.

    Clear policies:
        all_or_nothing: remove the pass's entries only when every record
            type succeeded; any failure leaves the queue untouched.
        per_type: remove the entries of each type that succeeded.
    """

    def __init__(
        self,
        queue: DurableQueue,
        dispatcher: RecordTypeDispatcher,
        probe: ConnectivityProbeProtocol,
        session: OperatorSession,
        store: KeyValueStoreProtocol,
        clear_policy: ClearPolicy = "all_or_nothing",
        auto_flush_on_enqueue: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            queue: Queue holding pending entries.
            dispatcher: Routes entries to their submission routines.
            probe: Connectivity check run at the start of every pass.
            session: Source of the operator records are attributed to.
            store: Store receiving the last successful sync timestamp.
            clear_policy: "all_or_nothing" or "per_type".
            auto_flush_on_enqueue: Run a pass after enqueue() when online.
        """
        if clear_policy not in get_args(ClearPolicy):
            raise ConfigurationError(f"Unknown clear policy: {clear_policy!r}")

        self._queue = queue
        self._dispatcher = dispatcher
        self._probe = probe
        self._session = session
        self._store = store
        self._clear_policy = clear_policy
        self._auto_flush = auto_flush_on_enqueue

        # Held for the duration of a pass; never waited on
        self._pass_lock = threading.Lock()

    @property
    def queue(self) -> DurableQueue:
        return self._queue

    @property
    def clear_policy(self) -> ClearPolicy:
        return self._clear_policy

    @property
    def is_running(self) -> bool:
        """True while a pass is in flight."""
        return self._pass_lock.locked()

    # =========================================================================
    # Producer API
    # =========================================================================

    def enqueue(self, record_type: RecordType | str, payload: Any) -> QueueEntry:
        """Queue a record and opportunistically sync when online.

        The entry is persisted before any sync is attempted, so a failing
        pass never loses it.

        Raises:
            ValidationError: If record_type is not a known record type.
        """
        parsed = record_type if isinstance(record_type, RecordType) else RecordType.parse(record_type)
        if parsed is None:
            raise ValidationError(f"Unknown record type: {record_type!r}")

        entry = self._queue.enqueue(parsed, payload)

        if self._auto_flush and self._probe.is_online():
            try:
                self.run_pass(trigger="enqueue")
            except LeiraSyncError:
                logger.error("Opportunistic sync after enqueue failed", exc_info=True)
        return entry

    def pending_count(self) -> int:
        return self._queue.size()

    def status(self) -> QueueStatus:
        return self._queue.status()

    def last_sync_at(self) -> datetime | None:
        """When the last pass reached the synchronized state, if ever."""
        raw = self._store.get(LAST_SYNC_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unreadable %s value: %r", LAST_SYNC_KEY, raw)
            return None

    # =========================================================================
    # Passes
    # =========================================================================

    def synchronize(
        self, cancel_event: threading.Event | None = None, trigger: str = "manual"
    ) -> bool:
        """Run a pass and report whether everything was synchronized."""
        return self.run_pass(cancel_event=cancel_event, trigger=trigger).synchronized

    def run_pass(
        self, cancel_event: threading.Event | None = None, trigger: str = "manual"
    ) -> PassResult:
        """Run one synchronization pass.

        Returns SKIPPED at once if another pass is in flight.

        Args:
            cancel_event: When set, record types not yet attempted are
                skipped and the pass reports CANCELLED.
            trigger: Label attached to the pass's log lines.

        Returns:
            PassResult describing what happened.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.info("Sync pass already in progress; skipping %s trigger", trigger)
            return PassResult(state=PassState.SKIPPED)

        try:
            with pass_context(trigger) as ctx:
                result = self._run(cancel_event)
                result.pass_id = ctx.pass_id
                if result.synchronized:
                    self._store.set(LAST_SYNC_KEY, isoformat_utc())
                logger.info(
                    "Sync pass finished: %s (%d ok, %d failed, %d removed) in %.1fms",
                    result.state.value,
                    result.successes,
                    result.errors,
                    result.removed,
                    ctx.elapsed_ms(),
                )
                return result
        finally:
            self._pass_lock.release()

    def _run(self, cancel_event: threading.Event | None) -> PassResult:
        try:
            operator = self._check_preconditions()
        except OfflineError:
            logger.info("Device offline; sync deferred")
            return PassResult(state=PassState.OFFLINE)
        except NoIdentityError:
            logger.warning("No operator logged in; sync not attempted")
            return PassResult(state=PassState.NO_IDENTITY)

        snapshot = self._queue.read_all()
        if not snapshot:
            logger.info("Sync queue empty; nothing to send")
            return PassResult(state=PassState.SYNCHRONIZED)

        groups, unroutable = self._dispatcher.partition(snapshot)
        for entry in unroutable:
            logger.warning("Leaving entry %s with unknown type %r in the queue", entry.id, entry.type)
        logger.info(
            "Syncing %d entries across %d record types as operator %s",
            len(snapshot) - len(unroutable),
            len(groups),
            operator.id,
        )

        outcomes = self._dispatcher.dispatch(groups, operator, cancel_event=cancel_event)
        return self._finalize(groups, outcomes, cancel_event)

    def _check_preconditions(self) -> OperatorIdentity:
        if not self._probe.is_online():
            raise OfflineError()
        return self._session.require()

    def _finalize(
        self,
        groups: dict[RecordType, list[QueueEntry]],
        outcomes: list[SyncOutcome],
        cancel_event: threading.Event | None,
    ) -> PassResult:
        attempted = {o.record_type for o in outcomes}
        cancelled = (
            cancel_event is not None
            and cancel_event.is_set()
            and any(rt not in attempted for rt in groups)
        )
        failed = any(not o.succeeded for o in outcomes)

        if self._clear_policy == "per_type":
            clear_types = [o.record_type for o in outcomes if o.succeeded]
        elif failed or cancelled:
            clear_types = []
        else:
            clear_types = list(groups)

        removed = self._queue.remove(e.id for rt in clear_types for e in groups[rt])

        if cancelled:
            state = PassState.CANCELLED
        elif failed:
            state = PassState.DEFERRED
            if self._clear_policy == "all_or_nothing":
                logger.warning("Some record types failed; keeping all queued entries for retry")
        else:
            state = PassState.SYNCHRONIZED
        return PassResult(state=state, outcomes=outcomes, removed=removed)
