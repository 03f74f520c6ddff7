"""Command line entry point for leira-sync."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import TYPE_CHECKING, NoReturn

if TYPE_CHECKING:
    from leira_sync.factory import ServiceContainer

logger = logging.getLogger(__name__)


def _build_services(args: argparse.Namespace) -> ServiceContainer:
    from leira_sync.adapters.connectivity import StaticConnectivityProbe
    from leira_sync.config import get_settings
    from leira_sync.core.logging import configure_logging
    from leira_sync.factory import ServiceFactory

    settings = get_settings()
    configure_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        json_format=settings.log_json,
    )

    probe = None
    if args.assume_online:
        probe = StaticConnectivityProbe(True)
    elif args.assume_offline:
        probe = StaticConnectivityProbe(False)
    return ServiceFactory(settings, probe=probe).create_all()


def run_status(args: argparse.Namespace) -> int:
    """Print the state of both queues and the operator session."""
    services = _build_services(args)
    status = services.orchestrator.status()
    operator = services.session.current()
    last_sync = services.orchestrator.last_sync_at()

    print("Leira Sync - Queue Status")
    print(f"Sync queue:      {status.total} entries ({status.pending} pending, "
          f"{status.with_errors} with errors)")
    if status.last_entry is not None:
        print(f"Newest entry:    {status.last_entry.id} ({status.last_entry.type})")
    print(f"Bounded queue:   {services.bounded_queue.size()} entries")
    print(f"Operator:        {operator.name + ' (' + operator.id + ')' if operator else '(none)'}")
    print(f"Last sync:       {last_sync.isoformat() if last_sync else 'never'}")
    print(f"Online:          {'yes' if services.probe.is_online() else 'no'}")
    return 0


def run_enqueue(args: argparse.Namespace) -> int:
    """Queue one record, read as JSON from --payload."""
    from leira_sync.core.errors import LeiraSyncError

    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        print(f"Error: --payload is not valid JSON: {e}")
        return 1

    services = _build_services(args)
    try:
        if args.bounded:
            entry = services.bounded_queue.enqueue(args.type, payload)
        else:
            entry = services.orchestrator.enqueue(args.type, payload)
    except LeiraSyncError as e:
        print(f"Error: {e}")
        return 1

    print(f"Queued {entry.id}")
    return 0


def run_sync(args: argparse.Namespace) -> int:
    """Run one synchronization pass. Exit code 0 only when fully synchronized."""
    services = _build_services(args)
    result = services.orchestrator.run_pass(trigger="cli")

    if result.synchronized:
        print(f"Sync complete: {result.successes} record type(s) sent, "
              f"{result.removed} entries cleared")
        return 0

    print(f"Warning: sync {result.state.value}; queued entries kept for the next attempt")
    for outcome in result.outcomes:
        if not outcome.succeeded:
            print(f"  - {outcome.record_type.value}: {outcome.error}")
    return 1


def run_drain(args: argparse.Namespace) -> int:
    """Drain the bounded queue to one endpoint."""
    services = _build_services(args)
    if not services.probe.is_online():
        print("Warning: offline; bounded queue not drained")
        return 1

    result = services.bounded_queue.drain(args.endpoint)
    print(f"Drained to {args.endpoint}: {result.succeeded} delivered, "
          f"{result.failed} failed, {result.dropped} dropped")
    return 0 if result.failed == 0 else 1


def run_periodic(args: argparse.Namespace) -> int:
    """Run the periodic trigger in the foreground until interrupted."""
    services = _build_services(args)
    services.trigger.start(interval_seconds=args.interval)
    print(f"Periodic sync running every {services.trigger.interval_seconds:.0f}s. "
          "Press Ctrl+C to stop.")

    stop = threading.Event()
    try:
        while not stop.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        services.trigger.stop()

    stats = services.trigger.get_stats()
    print(f"Ticks run: {stats['ticks_run']}, skipped: {stats['ticks_skipped']}, "
          f"failed: {stats['ticks_failed']}")
    return 0


def run_login(args: argparse.Namespace) -> int:
    from leira_sync.core.models import OperatorIdentity

    services = _build_services(args)
    services.session.login(OperatorIdentity(id=args.id, name=args.name))
    print(f"Logged in as {args.name}")
    return 0


def run_logout(args: argparse.Namespace) -> int:
    services = _build_services(args)
    services.session.logout()
    print("Logged out")
    return 0


def main() -> NoReturn:
    """Main entry point with subcommand support."""
    from leira_sync.core.models import RecordType

    parser = argparse.ArgumentParser(
        prog="leira-sync",
        description="Offline-first sync queue for composting-yard records",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    connectivity = parser.add_mutually_exclusive_group()
    connectivity.add_argument(
        "--assume-online",
        action="store_true",
        help="Skip the connectivity probe and treat the device as online",
    )
    connectivity.add_argument(
        "--assume-offline",
        action="store_true",
        help="Skip the connectivity probe and treat the device as offline",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    subparsers.add_parser("status", help="Show queue and session status")

    enqueue_parser = subparsers.add_parser("enqueue", help="Queue one record for sync")
    enqueue_parser.add_argument(
        "type",
        choices=[t.value for t in RecordType],
        help="Record type",
    )
    enqueue_parser.add_argument(
        "--payload",
        required=True,
        help="Record as a JSON object",
    )
    enqueue_parser.add_argument(
        "--bounded",
        action="store_true",
        help="Queue into the bounded queue instead of the sync queue",
    )

    subparsers.add_parser("sync", help="Run one synchronization pass now")

    drain_parser = subparsers.add_parser("drain", help="Drain the bounded queue in batches")
    drain_parser.add_argument("endpoint", help="Sync function receiving the batches")

    run_parser = subparsers.add_parser("run", help="Run the periodic sync in the foreground")
    run_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between passes (default: from settings)",
    )

    login_parser = subparsers.add_parser("login", help="Persist the current operator")
    login_parser.add_argument("--id", required=True, help="Operator id")
    login_parser.add_argument("--name", required=True, help="Operator name")

    subparsers.add_parser("logout", help="Clear the current operator")

    args = parser.parse_args()

    if args.version:
        from leira_sync import __version__

        print(f"leira-sync {__version__}")
        sys.exit(0)

    commands = {
        "status": run_status,
        "enqueue": run_enqueue,
        "sync": run_sync,
        "drain": run_drain,
        "run": run_periodic,
        "login": run_login,
        "logout": run_logout,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    sys.exit(handler(args))


if __name__ == "__main__":
    main()
