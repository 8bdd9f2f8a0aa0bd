from __future__ import annotations

import pytest

from src.core.services.progress import IDLE_PROGRESS, ProgressTracker


@pytest.fixture
def changes() -> list[float]:
    return []


@pytest.fixture
def tracker(changes) -> ProgressTracker:
    return ProgressTracker(on_change=changes.append)


def test_idle_by_default(tracker) -> None:
    assert tracker.progress == IDLE_PROGRESS


def test_burst(tracker, changes) -> None:
    tracker.expect()
    tracker.expect()
    assert tracker.progress == 0.0

    tracker.complete()
    assert tracker.progress == 0.5

    tracker.complete()
    assert tracker.progress == IDLE_PROGRESS
    assert changes == [0.0, 0.5, IDLE_PROGRESS]


def test_burst_grows_while_running(tracker) -> None:
    tracker.expect()
    tracker.complete()
    tracker.expect(4)
    tracker.complete()
    assert tracker.progress == pytest.approx(0.25)


def test_new_burst_after_idle(tracker) -> None:
    tracker.expect()
    tracker.complete()
    tracker.expect(2)
    assert tracker.total == 2
    assert tracker.completed == 0


def test_cancel_remainder(tracker) -> None:
    tracker.expect(4)
    tracker.complete()
    tracker.cancel(3)
    assert tracker.progress == IDLE_PROGRESS


def test_no_event_without_change(tracker, changes) -> None:
    tracker.expect(2)
    tracker.complete()
    tracker.expect(2)
    tracker.complete()
    # 0/2, 1/2, 1/4, 2/4
    assert changes == [0.0, 0.5, 0.25, 0.5]
