"""Tests for the periodic sync trigger."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from leira_sync.adapters.connectivity import StaticConnectivityProbe
from leira_sync.core.models import PassResult, PassState
from leira_sync.services.periodic import PeriodicSyncTrigger


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def orchestrator() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.pending_count.return_value = 2
    orchestrator.run_pass.return_value = PassResult(state=PassState.SYNCHRONIZED)
    return orchestrator


@pytest.fixture
def trigger(orchestrator: MagicMock) -> PeriodicSyncTrigger:
    trigger = PeriodicSyncTrigger(orchestrator, StaticConnectivityProbe(True), interval_seconds=0.05)
    yield trigger
    trigger.stop(timeout=2.0)


# =============================================================================
# Lifecycle
# =============================================================================


@pytest.mark.unit
class TestLifecycle:
    def test_rejects_non_positive_interval(self, orchestrator: MagicMock) -> None:
        with pytest.raises(ValueError):
            PeriodicSyncTrigger(orchestrator, StaticConnectivityProbe(True), interval_seconds=0)

    def test_start_and_stop(self, trigger: PeriodicSyncTrigger) -> None:
        assert not trigger.is_running
        trigger.start()
        assert trigger.is_running
        trigger.stop(timeout=2.0)
        assert not trigger.is_running

    def test_start_is_idempotent(self, trigger: PeriodicSyncTrigger) -> None:
        trigger.start()
        thread = trigger._worker_thread
        trigger.start()
        assert trigger._worker_thread is thread

    def test_stop_when_not_running_is_noop(self, trigger: PeriodicSyncTrigger) -> None:
        trigger.stop()
        assert not trigger.is_running

    def test_start_overrides_interval(self, trigger: PeriodicSyncTrigger) -> None:
        trigger.start(interval_seconds=0.2)
        assert trigger.interval_seconds == 0.2

    def test_restart_after_stop(self, trigger: PeriodicSyncTrigger) -> None:
        trigger.start()
        trigger.stop(timeout=2.0)
        trigger.start()
        assert trigger.is_running

    def test_stop_waits_for_start_in_progress(self, trigger: PeriodicSyncTrigger) -> None:
        trigger.start()
        stopper = threading.Thread(target=trigger.stop, kwargs={"timeout": 2.0})

        with trigger._lock:
            stopper.start()
            time.sleep(0.1)
            assert not trigger._shutdown_event.is_set()
            assert trigger.is_running

        stopper.join(timeout=5.0)
        assert not stopper.is_alive()
        assert not trigger.is_running

    def test_concurrent_start_and_stop_settle(self, trigger: PeriodicSyncTrigger) -> None:
        def cycle() -> None:
            for _ in range(10):
                trigger.start()
                trigger.stop(timeout=2.0)

        threads = [threading.Thread(target=cycle) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30.0)

        trigger.stop(timeout=2.0)
        assert not trigger.is_running


# =============================================================================
# Ticks
# =============================================================================


@pytest.mark.unit
class TestTicks:
    def test_syncs_immediately_then_periodically(
        self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock
    ) -> None:
        trigger.start()
        assert wait_for(lambda: orchestrator.run_pass.call_count >= 3)
        kwargs = orchestrator.run_pass.call_args.kwargs
        assert kwargs["trigger"] == "periodic"
        assert isinstance(kwargs["cancel_event"], threading.Event)

    def test_no_immediate_sync_when_disabled(self, orchestrator: MagicMock) -> None:
        trigger = PeriodicSyncTrigger(
            orchestrator, StaticConnectivityProbe(True), interval_seconds=10.0, sync_on_start=False
        )
        trigger.start()
        time.sleep(0.1)
        trigger.stop(timeout=2.0)
        orchestrator.run_pass.assert_not_called()

    def test_offline_tick_skipped(self, orchestrator: MagicMock) -> None:
        trigger = PeriodicSyncTrigger(orchestrator, StaticConnectivityProbe(False), 10.0)
        assert trigger._tick() is None
        orchestrator.run_pass.assert_not_called()
        assert trigger.get_stats()["ticks_skipped"] == 1

    def test_empty_queue_tick_skipped(
        self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock
    ) -> None:
        orchestrator.pending_count.return_value = 0
        assert trigger._tick() is None
        orchestrator.run_pass.assert_not_called()

    def test_stats(self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock) -> None:
        trigger._tick()
        orchestrator.run_pass.return_value = PassResult(state=PassState.DEFERRED)
        trigger._tick()
        orchestrator.run_pass.return_value = PassResult(state=PassState.SKIPPED)
        trigger._tick()

        stats = trigger.get_stats()
        assert stats["ticks_run"] == 2
        assert stats["ticks_failed"] == 1
        assert stats["ticks_skipped"] == 1
        assert stats["last_state"] == "skipped"

    def test_worker_survives_errors(
        self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock
    ) -> None:
        orchestrator.run_pass.side_effect = [RuntimeError("boom")] + [
            PassResult(state=PassState.SYNCHRONIZED)
        ] * 100
        trigger.start()
        assert wait_for(lambda: orchestrator.run_pass.call_count >= 2)
        assert trigger.is_running
        assert trigger.get_stats()["ticks_failed"] >= 1

    def test_stop_sets_cancel_event(
        self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock
    ) -> None:
        trigger.start()
        assert wait_for(lambda: orchestrator.run_pass.called)
        cancel_event = orchestrator.run_pass.call_args.kwargs["cancel_event"]
        trigger.stop(timeout=2.0)
        assert cancel_event.is_set()

    def test_sync_now(self, trigger: PeriodicSyncTrigger, orchestrator: MagicMock) -> None:
        result = trigger.sync_now()
        assert result.state == PassState.SYNCHRONIZED
        orchestrator.run_pass.assert_called_once_with(trigger="manual")
