"""
Clock and Scheduler Port Interfaces.

The clock drives cache ages and report directory names; the scheduler
drives report ticks and periodic cache checks. Both are injected so
tests can advance time by hand.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol


class ClockPort(Protocol):
    def now(self) -> datetime:
        """Return current local time."""
        ...


class SchedulerPort(Protocol):
    """
    Timer scheduling on the control thread.

    Callbacks never run re-entrantly from `call_later` itself.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Schedule callback after `delay` seconds. Returns a cancellable handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a scheduled callback. Unknown or fired handles are ignored."""
        ...
