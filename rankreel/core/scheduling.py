"""Cooperative scheduling for deferred work on a single logical actor.

All engine mutations and propagation run on one thread. Deferred work (retry
waits, store creation latency) is expressed as callbacks handed to a
scheduler:

- ``QtScheduler`` posts callbacks on the Qt event loop with ``QTimer.singleShot``.
- ``ManualScheduler`` is a virtual clock: nothing runs until ``advance()`` or
  ``run_until_idle()`` is called, which makes backoff timing testable.

``retry_with_backoff`` is the bounded retry combinator used by the linkage
resolver: attempt ``n`` that fails waits ``n * base_delay`` before attempt
``n + 1``.
"""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable, Optional, Protocol, TypeVar

from PySide6.QtCore import QTimer

T = TypeVar("T")


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


class QtScheduler:
    """Runs callbacks on the Qt event loop of the calling thread."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        QTimer.singleShot(max(0, int(round(delay * 1000))), callback)


class ManualScheduler:
    """Virtual clock. Callbacks due at the same instant run in submission order."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self._now + max(0.0, delay), next(self._seq), callback))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running everything that falls due. Returns tasks run."""
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self._now = due
            callback()
            ran += 1
        self._now = target
        return ran

    def run_until_idle(self, max_tasks: int = 10_000) -> int:
        """Run queued callbacks (and any they schedule) until the queue is empty."""
        ran = 0
        while self._queue:
            if ran >= max_tasks:
                raise RuntimeError(f"scheduler still busy after {max_tasks} tasks")
            due, _, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            callback()
            ran += 1
        return ran


def retry_with_backoff(
    scheduler: Scheduler,
    probe: Callable[[int], Optional[T]],
    *,
    attempts: int,
    base_delay: float,
    initial_delay: Optional[float] = None,
    on_success: Optional[Callable[[T], None]] = None,
    on_exhausted: Optional[Callable[[int], None]] = None,
) -> None:
    """Call ``probe(attempt)`` until it returns something other than ``None``.

    The first probe runs after ``initial_delay`` (defaults to ``base_delay``).
    After ``attempts`` probes returned ``None``, ``on_exhausted(attempts)`` is
    called and no further work is scheduled.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    first_delay = base_delay if initial_delay is None else initial_delay

    def _run(attempt: int) -> None:
        result = probe(attempt)
        if result is not None:
            if on_success is not None:
                on_success(result)
            return
        if attempt >= attempts:
            if on_exhausted is not None:
                on_exhausted(attempts)
            return
        scheduler.call_later(attempt * base_delay, lambda: _run(attempt + 1))

    scheduler.call_later(first_delay, lambda: _run(1))


__all__ = ["Scheduler", "QtScheduler", "ManualScheduler", "retry_with_backoff"]
