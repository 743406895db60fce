"""
Label-parallel scheduling.

A fixed pool of worker threads drains one shared WorkCursor. Each claim
atomically reads and advances the cursor, so every label is handed out
exactly once and fast workers immediately pick up the next label.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Used when the cpu count cannot be detected
FALLBACK_THREADS = 4


def resolve_thread_count(hint: Optional[int], n_labels: int) -> int:
    """
    Number of workers for a build.

    min(max(hint or cpu_count or 4, 1), n_labels); hint 0/None = automatic.
    Returns 0 when there is nothing to process.
    """
    if n_labels <= 0:
        return 0
    requested = hint if hint else (os.cpu_count() or FALLBACK_THREADS)
    return min(max(requested, 1), n_labels)


class CancelToken:
    """Caller-side signal to stop handing out new labels."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class WorkCursor(Generic[T]):
    """
    Shared index over a fixed item list.

    claim() returns the next unclaimed item, or None once the list is
    exhausted, the cursor is closed, or the cancel token fired.
    """

    def __init__(self, items: Sequence[T], cancel: Optional[CancelToken] = None):
        self._items = tuple(items)
        self._next = 0
        self._closed = False
        self._cancel = cancel
        self._lock = threading.Lock()

    def claim(self) -> Optional[T]:
        with self._lock:
            if self._closed or (self._cancel is not None and self._cancel.cancelled):
                self._closed = True
                return None
            index = self._next
            self._next += 1
        if index >= len(self._items):
            return None
        return self._items[index]

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def claimed(self) -> int:
        with self._lock:
            return min(self._next, len(self._items))

    def unclaimed(self) -> List[T]:
        """Items never handed out (non-empty only after close/cancel)."""
        return list(self._items[self.claimed:])


@dataclass
class PoolResult(Generic[T]):
    n_threads: int
    processed: List[T] = field(default_factory=list)
    failed: List[T] = field(default_factory=list)
    unclaimed: List[T] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return bool(self.unclaimed)


def run_workers(
    items: Sequence[T],
    task: Callable[[T], None],
    threads: int,
    cancel: Optional[CancelToken] = None,
    on_error: Optional[Callable[[T, Exception], None]] = None
) -> PoolResult[T]:
    """
    Run `task` over every item on a fixed pool of threads.

    Blocks until all workers have terminated. An exception raised by
    `task` is confined to its item: it is passed to `on_error` (or logged)
    and the worker moves on to the next claim.

    Args:
        items: Work items, dispatched in the given order
        task: Called once per claimed item, from a worker thread
        threads: Pool size (already resolved; see resolve_thread_count)
        cancel: Optional token; once set no further items are claimed
        on_error: Optional callback for task exceptions

    Returns:
        PoolResult with processed, failed and unclaimed items
    """
    cursor: WorkCursor[T] = WorkCursor(items, cancel)
    result: PoolResult[T] = PoolResult(n_threads=threads)
    result_lock = threading.Lock()

    def worker() -> None:
        while True:
            item = cursor.claim()
            if item is None:
                return
            try:
                task(item)
            except Exception as e:
                if on_error is not None:
                    on_error(item, e)
                else:
                    logger.exception(f"Task for {item!r} failed")
                with result_lock:
                    result.failed.append(item)
            else:
                with result_lock:
                    result.processed.append(item)

    if threads <= 0 or not items:
        return result

    pool = [
        threading.Thread(target=worker, name=f"labelmesh-worker-{i}", daemon=True)
        for i in range(threads)
    ]
    logger.debug(f"Starting {threads} workers for {len(items)} items")
    for t in pool:
        t.start()
    for t in pool:
        t.join()

    result.unclaimed = cursor.unclaimed()
    return result
