"""Locks serializing every read-modify-write of a persisted queue.

A queue is one JSON document rewritten wholesale, so two writers that each
read, append and write back can lose an update. QueueLock combines a
reentrant thread lock (writers inside this process) with a cross-process
FileLock (another CLI invocation or worker sharing the same data path).
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from leira_sync.core.errors import FileLockError


class QueueLock:
    """Thread lock plus optional cross-process lock, acquired in that order.

    Both halves are reentrant, so nested use from one thread
    (e.g. BoundedQueue.append() -> DurableQueue.read_all()) does not block.

    Example:
        lock = QueueLock(Path("/tmp/syncQueue.lock"), timeout=10.0)
        with lock:
            with lock:
                pass

    Args:
        lock_path: Lock file path, or None to skip cross-process locking.
        timeout: Seconds to wait for the file lock.
    """

    def __init__(self, lock_path: Path | None = None, timeout: float = 10.0) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        self._thread_lock = threading.RLock()
        self._file_lock = (
            FileLock(str(lock_path), timeout=timeout) if lock_path is not None else None
        )

    def __enter__(self) -> QueueLock:
        self._thread_lock.acquire()
        if self._file_lock is not None:
            try:
                self._file_lock.acquire()
            except FileLockTimeout as e:
                self._thread_lock.release()
                raise FileLockError(
                    lock_path=str(self.lock_path),
                    timeout=self.timeout,
                ) from e
            except BaseException:
                self._thread_lock.release()
                raise
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if self._file_lock is not None:
                self._file_lock.release()
        finally:
            self._thread_lock.release()
