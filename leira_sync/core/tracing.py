"""Sync pass tracing and timing utilities.

Every synchronization pass runs inside a PassContext so log lines emitted
anywhere below the orchestrator (dispatcher, HTTP client, queue) can be
correlated. Uses contextvars, so the context follows the thread that runs
the pass.

Usage:
    from leira_sync.core.tracing import pass_context, TimingContext

    with pass_context("periodic") as ctx:
        timing = TimingContext()
        with timing.measure("dispatch"):
            ...
        logger.info("Pass %s took %.1fms", ctx.pass_id, timing.total_ms())
"""

from __future__ import annotations

import contextvars
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextvars import Token

from leira_sync.core.utils import utc_now


@dataclass
class PassContext:
    """Context information for a sync pass.

    Attributes:
        pass_id: Unique identifier for the pass (first 12 chars of UUID).
        trigger: What started the pass ("manual", "periodic", "enqueue").
        started_at: When the pass started.
    """

    pass_id: str
    trigger: str
    started_at: datetime

    @classmethod
    def create(cls, trigger: str) -> PassContext:
        return cls(
            pass_id=uuid.uuid4().hex[:12],
            trigger=trigger,
            started_at=utc_now(),
        )

    def elapsed_ms(self) -> float:
        """Elapsed time since the pass started, in milliseconds."""
        return (utc_now() - self.started_at).total_seconds() * 1000


_context: contextvars.ContextVar[PassContext | None] = contextvars.ContextVar(
    "pass_context", default=None
)


def get_current_context() -> PassContext | None:
    """Get the current pass context, or None outside a pass."""
    return _context.get()


def set_context(ctx: PassContext) -> Token[PassContext | None]:
    """Set the current pass context and return a reset token."""
    return _context.set(ctx)


def clear_context(token: Token[PassContext | None]) -> None:
    """Reset the context to its previous value."""
    _context.reset(token)


@contextmanager
def pass_context(trigger: str) -> Generator[PassContext, None, None]:
    """Context manager for pass tracing.

    Creates a PassContext, sets it as current, and clears it on exit.

    Args:
        trigger: What started the pass.

    Yields:
        The created PassContext.
    """
    ctx = PassContext.create(trigger)
    token = set_context(ctx)
    try:
        yield ctx
    finally:
        clear_context(token)


@dataclass
class TimingContext:
    """Collects named timing measurements in milliseconds."""

    timings: dict[str, float] = field(default_factory=dict)
    _start: float = field(default_factory=time.perf_counter)

    @contextmanager
    def measure(self, name: str) -> Generator[None, None, None]:
        """Measure the duration of the enclosed block under ``name``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name] = (time.perf_counter() - start) * 1000

    def total_ms(self) -> float:
        """Milliseconds since this TimingContext was created."""
        return (time.perf_counter() - self._start) * 1000
