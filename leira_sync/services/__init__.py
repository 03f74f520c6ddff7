"""Service layer for leira-sync."""

from leira_sync.services.bounded_queue import BoundedQueue
from leira_sync.services.dispatcher import (
    DISPATCH_ORDER,
    ENDPOINTS,
    DeletionRoutine,
    EndpointSpec,
    RecordTypeDispatcher,
    SubmissionRoutine,
    WriteMode,
    build_default_routines,
)
from leira_sync.services.orchestrator import SyncOrchestrator
from leira_sync.services.periodic import PeriodicSyncTrigger
from leira_sync.services.queue import DurableQueue
from leira_sync.services.session import OperatorSession

__all__ = [
    # Queues
    "BoundedQueue",
    "DurableQueue",
    # Dispatch
    "DISPATCH_ORDER",
    "ENDPOINTS",
    "DeletionRoutine",
    "EndpointSpec",
    "RecordTypeDispatcher",
    "SubmissionRoutine",
    "WriteMode",
    "build_default_routines",
    # Orchestration
    "OperatorSession",
    "PeriodicSyncTrigger",
    "SyncOrchestrator",
]
