"""Periodic background sync trigger.

Same daemon-thread shape as the rest of the background services:
- __init__: threading primitives, config
- start(): idempotent, creates daemon thread
- stop(timeout): sets shutdown event, joins thread, logs stats
- _background_worker(): tick loop with event.wait(interval)

The shutdown event doubles as the cancel event of the pass in flight, so a
stop() request interrupts a pass between record types.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from leira_sync.core.models import PassResult, PassState

if TYPE_CHECKING:
    from leira_sync.ports.storage import ConnectivityProbeProtocol
    from leira_sync.services.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class PeriodicSyncTrigger:
    """Runs a sync pass on a fixed interval while started."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        probe: ConnectivityProbeProtocol,
        interval_seconds: float = 60.0,
        sync_on_start: bool = True,
    ) -> None:
        """Initialize the trigger.

        Args:
            orchestrator: Orchestrator whose passes are triggered.
            probe: Connectivity check used to skip ticks while offline.
            interval_seconds: Seconds between ticks.
            sync_on_start: Run a tick as soon as the worker starts.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._orchestrator = orchestrator
        self._probe = probe
        self._interval = interval_seconds
        self._sync_on_start = sync_on_start

        # Threading primitives
        self._lock = threading.Lock()
        self._shutdown_event = threading.Event()
        self._worker_thread: threading.Thread | None = None

        # Statistics
        self._stats_lock = threading.Lock()
        self._ticks_run = 0
        self._ticks_skipped = 0
        self._ticks_failed = 0
        self._last_state: PassState | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._worker_thread is not None and self._worker_thread.is_alive()

    def start(self, interval_seconds: float | None = None) -> None:
        """Start the periodic worker.

        Safe to call multiple times: a running worker is left as is.

        Args:
            interval_seconds: Overrides the configured interval.
        """
        with self._lock:
            if self.is_running:
                logger.debug("Periodic sync already running")
                return

            if interval_seconds is not None:
                if interval_seconds <= 0:
                    raise ValueError("interval_seconds must be positive")
                self._interval = interval_seconds

            self._shutdown_event.clear()
            self._worker_thread = threading.Thread(
                target=self._background_worker,
                name="periodic-sync",
                daemon=True,
            )
            self._worker_thread.start()
            logger.info("Periodic sync started (interval=%.1fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, cancelling a pass in flight between record types.

        Args:
            timeout: Maximum seconds to wait for the worker to exit.
        """
        with self._lock:
            worker = self._worker_thread
            if worker is None or not worker.is_alive():
                return

            logger.info("Stopping periodic sync...")
            self._shutdown_event.set()
            worker.join(timeout=timeout)

        if worker.is_alive():
            logger.warning("Periodic sync did not stop within timeout")
        else:
            with self._stats_lock:
                logger.info(
                    "Periodic sync stopped. Ticks: %d, Skipped: %d, Failed: %d",
                    self._ticks_run,
                    self._ticks_skipped,
                    self._ticks_failed,
                )

    def sync_now(self) -> PassResult:
        """Manual sync action, independent of the schedule."""
        return self._orchestrator.run_pass(trigger="manual")

    def get_stats(self) -> dict[str, Any]:
        with self._stats_lock:
            return {
                "interval_seconds": self._interval,
                "ticks_run": self._ticks_run,
                "ticks_skipped": self._ticks_skipped,
                "ticks_failed": self._ticks_failed,
                "last_state": self._last_state.value if self._last_state else None,
                "worker_alive": self.is_running,
            }

    # =========================================================================
    # Background Worker
    # =========================================================================

    def _background_worker(self) -> None:
        logger.debug("Periodic sync worker started")

        if not self._sync_on_start:
            self._shutdown_event.wait(timeout=self._interval)

        while not self._shutdown_event.is_set():
            try:
                self._tick()
            except Exception:
                with self._stats_lock:
                    self._ticks_failed += 1
                logger.error("Error in periodic sync tick", exc_info=True)

            self._shutdown_event.wait(timeout=self._interval)

        logger.debug("Periodic sync worker stopped")

    def _tick(self) -> PassResult | None:
        """Run one scheduled pass unless there is nothing to do."""
        if not self._probe.is_online():
            logger.debug("Offline; skipping periodic sync")
            self._record_skip()
            return None
        if self._orchestrator.pending_count() == 0:
            logger.debug("Sync queue empty; skipping periodic sync")
            self._record_skip()
            return None

        result = self._orchestrator.run_pass(
            cancel_event=self._shutdown_event, trigger="periodic"
        )
        with self._stats_lock:
            if result.state == PassState.SKIPPED:
                self._ticks_skipped += 1
            else:
                self._ticks_run += 1
                if not result.synchronized:
                    self._ticks_failed += 1
            self._last_state = result.state
        return result

    def _record_skip(self) -> None:
        with self._stats_lock:
            self._ticks_skipped += 1
