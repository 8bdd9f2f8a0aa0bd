"""
End-to-end control flow through the Generator with a scripted renderer.

Registered types: cpu (plain template) and mem (full-size JSON).
"""

from __future__ import annotations

from pathlib import Path

SIZE = (481, 155)


def test_request_before_start_fails(generator, renderer, events) -> None:
    generator.get_image(1, "cpu", 0, 3600, SIZE, False, "")

    assert events.images == []
    assert len(events.errors) == 1
    assert renderer.written == []


def test_session(generator, renderer, events, clock, scheduler) -> None:
    assert generator.start()
    assert events.ready == [True]

    # Two callers, one render
    generator.get_image(1, "cpu", 0, 3600, SIZE, False, "")
    generator.get_image(2, "cpu", 0, 3600, SIZE, False, "")
    assert len(renderer.written) == 1
    renderer.respond_ok("481x155")

    path = renderer.output_path(renderer.written[0])
    assert events.images == [(1, path), (2, path)]

    # Caller 1 already shows it
    generator.get_image(1, "cpu", 0, 3600, SIZE, False, path)
    assert events.images == [(1, path), (2, path)]

    # Full-size mem for caller 3, then a thumbnail with derived height
    generator.get_image(3, "mem", 0, 3600, (800, 400), True, "")
    renderer.respond_ok("800x400")
    generator.get_image(3, "mem", 0, 3600, (400, 0), False, "")
    assert "--width 400 --height 200 --only-graph" in renderer.written[-1]
    renderer.respond_ok("400x200")
    assert [caller for caller, _ in events.images] == [1, 2, 3, 3]

    # Report over both types; full-size mem is already cached
    directory = generator.make_report(0, 3600, (800, 400))
    scheduler.advance(0)
    renderer.respond_ok("800x400")
    scheduler.advance(1.0)
    assert len(renderer.graph_commands) == 4
    assert events.reports == [directory]
    assert sorted(p.name for p in Path(directory).iterdir()) == ["cpu.png", "mem.png"]

    # Cache expires
    clock.advance(121)
    assert generator.check_cache() > 0
    assert not Path(path).exists()

    generator.close()
    assert events.ready == [True, False]
    assert events.errors == []


def test_crash_fails_all_waiters_once(started, renderer, events) -> None:
    started.get_image(1, "cpu", 0, 3600, SIZE, False, "")
    started.get_image(2, "mem", 0, 3600, SIZE, False, "")
    started.get_image(3, "cpu", 60, 3600, SIZE, False, "")

    renderer.crash(1, "rrdtool: malloc failed")

    assert events.images == []
    assert len(events.errors) == 1
    assert started.progress < 0

    # Recovery needs an explicit start
    started.get_image(1, "cpu", 0, 3600, SIZE, False, "")
    assert len(events.errors) == 2
    assert started.start()
    started.get_image(1, "cpu", 0, 3600, SIZE, False, "")
    renderer.respond_ok()
    assert len(events.images) == 1
