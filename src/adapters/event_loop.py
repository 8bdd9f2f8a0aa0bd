"""
Single-threaded event loop.

The one synchronization point of the runtime: renderer reader threads post
callbacks through a queue.Queue, timers live in a heap, and everything runs
on the thread calling `process_events` / `run_until`.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import queue
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(order=True)
class TimerHandle:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    interval: float | None = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)


class EventLoop:
    """SchedulerPort implementation plus a thread-safe `post`."""

    def __init__(self, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic
        self._posted: queue.Queue[Callable[[], None]] = queue.Queue()
        self._timers: list[TimerHandle] = []
        self._seq = itertools.count()

    # --- Scheduling ---

    def post(self, callback: Callable[[], None]) -> None:
        """Run callback on the loop thread. Safe from any thread."""
        self._posted.put(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._monotonic() + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._timers, handle)
        return handle

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError("Interval must be positive")
        handle = TimerHandle(
            self._monotonic() + interval, next(self._seq), callback, interval=interval
        )
        heapq.heappush(self._timers, handle)
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancelled = True

    # --- Running ---

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Error in event loop callback")

    def _run_due_timers(self) -> None:
        now = self._monotonic()
        due: list[TimerHandle] = []
        while self._timers and self._timers[0].due <= now:
            due.append(heapq.heappop(self._timers))
        for handle in due:
            if handle.cancelled:
                continue
            if handle.interval is not None:
                handle.due = now + handle.interval
                handle.seq = next(self._seq)
                heapq.heappush(self._timers, handle)
            self._run(handle.callback)

    def _next_wait(self, deadline: float) -> float:
        now = self._monotonic()
        wait = deadline - now
        live = [t for t in self._timers if not t.cancelled]
        if live:
            wait = min(wait, min(t.due for t in live) - now)
        return max(0.0, wait)

    def process_events(self, timeout: float = 0.0) -> None:
        """Run due timers and posted callbacks, waiting up to `timeout` for work."""
        deadline = self._monotonic() + timeout
        while True:
            self._run_due_timers()
            wait = self._next_wait(deadline)
            try:
                if wait > 0:
                    callback = self._posted.get(timeout=wait)
                else:
                    callback = self._posted.get_nowait()
            except queue.Empty:
                callback = None
            if callback is not None:
                self._run(callback)
                while True:
                    try:
                        self._run(self._posted.get_nowait())
                    except queue.Empty:
                        break
                self._run_due_timers()
                return
            if self._monotonic() >= deadline:
                self._run_due_timers()
                return

    def run_until(self, predicate: Callable[[], bool], timeout: float | None = None) -> bool:
        """Process events until predicate() holds. Returns False on timeout."""
        deadline = None if timeout is None else self._monotonic() + timeout
        while not predicate():
            if deadline is not None:
                remaining = deadline - self._monotonic()
                if remaining <= 0:
                    return False
                self.process_events(min(remaining, 0.1))
            else:
                self.process_events(0.1)
        return True
