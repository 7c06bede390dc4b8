"""
Salesdocs Document Lifecycle - Debounce Scheduler
=================================================
Injectable timers for autosave.

Two implementations:
- ThreadingScheduler: real threading.Timer per scheduled call.
- ManualScheduler: virtual time; tests call advance() to fire callbacks.

Both hand out TimerHandle objects whose cancel() is idempotent.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class DebounceScheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay_seconds unless cancelled first."""
        ...


# ══════════════════════════════════════════════════════════════
# REAL TIME
# ══════════════════════════════════════════════════════════════

class _ThreadingHandle:
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """Production scheduler. Callbacks run on daemon timer threads."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> _ThreadingHandle:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0.")
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return _ThreadingHandle(timer)


# ══════════════════════════════════════════════════════════════
# VIRTUAL TIME
# ══════════════════════════════════════════════════════════════

class _ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by advance().

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(1.5, save)
        scheduler.advance(1.5)   # save() runs here
    """

    def __init__(self):
        self._now = 0.0
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> _ManualHandle:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0.")
        handle = _ManualHandle(self._now + delay_seconds, callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """
        Move virtual time forward and run every due, uncancelled callback
        in due order. Callbacks may schedule new timers; those run too if
        they fall inside the window. Returns the number of callbacks run.
        """
        if seconds < 0:
            raise ValueError("seconds must be >= 0.")
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self._now = due
            if handle.cancelled:
                continue
            handle.callback()
            fired += 1
        self._now = target
        return fired

    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)
