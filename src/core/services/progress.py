"""
ProgressTracker - Completion fraction of the current burst of renders.

Returns `completed / total` while work is outstanding and IDLE_PROGRESS
otherwise. The burst resets once everything requested has completed.
"""

from __future__ import annotations

from collections.abc import Callable

IDLE_PROGRESS = -1.0


class ProgressTracker:
    def __init__(self, on_change: Callable[[float], None] | None = None) -> None:
        self._on_change = on_change or (lambda progress: None)
        self._total = 0
        self._completed = 0
        self._progress = IDLE_PROGRESS

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def total(self) -> int:
        return self._total

    @property
    def completed(self) -> int:
        return self._completed

    def expect(self, count: int = 1) -> None:
        """Add renders to the current burst."""
        self._total += count
        self._recalculate()

    def complete(self, count: int = 1) -> None:
        self._completed += count
        self._recalculate()

    def cancel(self, count: int) -> None:
        """Remove renders that will never complete from the burst."""
        self._total = max(self._completed, self._total - count)
        self._recalculate()

    def _recalculate(self) -> None:
        if self._total <= 0 or self._completed >= self._total:
            self._total = 0
            self._completed = 0
            value = IDLE_PROGRESS
        else:
            value = self._completed / self._total

        if value != self._progress:
            self._progress = value
            self._on_change(value)
