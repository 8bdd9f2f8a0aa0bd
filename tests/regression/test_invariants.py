"""
Regression checks for the generator's core guarantees.

R1 at most one renderer command in flight
R2 every waiter answered exactly once, across crashes too
R3 identical requests share one cache key and one render
R4 no notification when the caller already shows the image
R5 cache entries live for the configured timeout and no longer
R6 reports cover every registered type and reporting tracks the run
"""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from src.core.entities import PixelSize, RenderResult

TYPES = ("cpu", "mem")


class InFlightCounter:
    """Wraps the fake renderer to record how many commands are unanswered."""

    def __init__(self, renderer) -> None:
        self.renderer = renderer
        self.outstanding = 0
        self.max_outstanding = 0
        original_write = renderer.write

        def write(text: str) -> None:
            self.outstanding += 1
            self.max_outstanding = max(self.max_outstanding, self.outstanding)
            original_write(text)

        renderer.write = write

    def answer(self, ok: bool = True) -> None:
        self.outstanding -= 1
        if ok:
            self.renderer.respond_ok()
        else:
            self.renderer.respond_error("render failed")


# --- R1: One command in flight ---
def test_R1_single_in_flight_under_burst(started, renderer) -> None:
    """R1: Bursts of requests never put two commands on the pipe."""
    counter = InFlightCounter(renderer)
    rng = random.Random(7)

    for i in range(30):
        started.get_image(i, rng.choice(TYPES), rng.randrange(4) * 60, 3600, (200, 100), False, "")
        if rng.random() < 0.3:
            started.chdir(f"/data/{i}")

    while started.queue.in_flight is not None:
        assert counter.outstanding == 1
        counter.answer(ok=rng.random() < 0.8)

    assert counter.max_outstanding == 1
    assert not started.queue.busy


# --- R2: Exactly-once completion ---
@pytest.mark.parametrize("answered_before_crash", [0, 1, 3])
def test_R2_exactly_once_across_crash(started, renderer, answered_before_crash) -> None:
    """R2: Each request resolves once, whether answered or failed by a crash."""
    dispatcher = started._dispatcher
    calls: dict[int, list[RenderResult]] = {i: [] for i in range(6)}

    for i in range(6):
        dispatcher.request("cpu", i * 60, 3600, PixelSize(200, 100), False, calls[i].append)

    for _ in range(answered_before_crash):
        renderer.respond_ok()
    renderer.crash(1)

    for i, results in calls.items():
        assert len(results) == 1, f"request {i} resolved {len(results)} times"
        assert results[0].success == (i < answered_before_crash)


def test_R2_stop_fails_waiters_without_error_event(started, renderer, events) -> None:
    """R2: A requested stop fails queued work but is not reported as a crash."""
    results: list[RenderResult] = []
    started._dispatcher.request("cpu", 0, 3600, PixelSize(200, 100), False, results.append)
    started.stop()

    assert len(results) == 1
    assert not results[0].success
    assert events.errors == []


# --- R3: Key identity ---
def test_R3_identical_requests_share_render(started, renderer, events) -> None:
    """R3: N identical requests cost one render and N notifications."""
    for caller in range(5):
        started.get_image(caller, "mem", 300.0, 3600.0, (640, 320), True, "")

    assert len(renderer.graph_commands) == 1
    renderer.respond_ok("640x320")

    paths = {path for _, path in events.images}
    assert len(events.images) == 5
    assert len(paths) == 1


# --- R4: Suppression ---
def test_R4_no_duplicate_notification(started, renderer, events) -> None:
    """R4: A cached image equal to current_fname is not announced again."""
    started.get_image(1, "cpu", 0, 3600, (200, 100), False, "")
    renderer.respond_ok()
    path = events.images[0][1]

    for _ in range(3):
        started.get_image(1, "cpu", 0, 3600, (200, 100), False, path)
    started.get_image(2, "cpu", 0, 3600, (200, 100), False, "")

    assert events.images == [(1, path), (2, path)]


# --- R5: TTL ---
def test_R5_ttl(started, renderer, events, clock) -> None:
    """R5: Entries are served until the timeout, then re-rendered."""
    started.set_image_cache_timeout(30)
    started.get_image(1, "cpu", 0, 3600, (200, 100), False, "")
    renderer.respond_ok()
    first = events.images[0][1]

    clock.advance(29)
    started.get_image(2, "cpu", 0, 3600, (200, 100), False, "")
    assert len(renderer.graph_commands) == 1

    clock.advance(1)
    started.get_image(3, "cpu", 0, 3600, (200, 100), False, "")
    assert len(renderer.graph_commands) == 2
    assert not Path(first).exists()

    renderer.respond_ok()
    assert events.images[-1][1] != first


# --- R6: Report completeness ---
def test_R6_report_covers_all_types(started, renderer, scheduler, events) -> None:
    """R6: Every registered type lands in the report; reporting brackets the run."""
    started.register_image_type("disk", "DEF:d=disk.rrd:used:AVERAGE LINE1:d$color_main:disk")
    directory = started.make_report(0, 3600, (800, 400))

    flags: list[bool] = []
    scheduler.advance(0)
    for _ in range(10):
        flags.append(started.reporting)
        if started.queue.in_flight is not None:
            renderer.respond_ok("800x400")
        scheduler.advance(1.0)

    assert flags[0] is True
    assert not started.reporting
    assert events.reporting == [True, False]
    assert events.reports == [directory]
    assert sorted(p.name for p in Path(directory).iterdir()) == ["cpu.png", "disk.png", "mem.png"]
    assert started.progress < 0
