# services/scheduler.py

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Tuple


class TimerHandle:
    """Cancellable handle for a scheduled callback."""

    def __init__(self, cancel_fn: Optional[Callable[[], None]] = None):
        self._cancel_fn = cancel_fn
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._cancel_fn is not None:
            self._cancel_fn()


class Scheduler:
    """
    Source of time and delayed callbacks for the test engines.

    Every suspension point in a session (presentation windows, attention
    ticks, inter-trial pauses, the simulated training delay) goes through
    `call_later`, so engines never block and tests can swap in a virtual clock.
    """

    def now_ms(self) -> float:
        raise NotImplementedError

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def now_ms(self) -> float:
        return self._loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = self._loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
        return TimerHandle(handle.cancel)


class VirtualScheduler(Scheduler):
    """
    Manually advanced clock. Callbacks run in due-time order (ties in
    scheduling order) when `advance` moves the clock past them.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue: List[Tuple[float, int, TimerHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        due = self._now + max(0.0, delay_ms)
        heapq.heappush(self._queue, (due, next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, delta_ms: float) -> None:
        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._now = due
            if not handle.cancelled:
                handle.cancelled = True
                callback()
        self._now = target

    def run_all(self, limit: int = 10_000) -> None:
        """Fire every pending callback, including ones scheduled while running."""
        fired = 0
        while self._queue and fired < limit:
            due = self._queue[0][0]
            self.advance(max(0.0, due - self._now))
            fired += 1
