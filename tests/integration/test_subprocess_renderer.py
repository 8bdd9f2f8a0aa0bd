"""
Generator against a real renderer process.

Uses the bundled matplotlib renderer so the test does not need rrdtool.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from src.adapters.clock import SystemClock
from src.adapters.event_loop import EventLoop
from src.adapters.fs.filestore import ScratchStore
from src.adapters.log_events import LoggingEventSink
from src.adapters.rrdtool_process import SubprocessRenderer
from src.components.generator import GeneratorConfig, create_generator
from src.core.ports.renderer import RendererLaunchError
from src.core.services.report import ReportConfig

PROJECT_ROOT = Path(__file__).parent.parent.parent
TIMEOUT = 30.0

CPU = '{"command": "--title CPU LINE1:user$color_main:user AREA:system$color_secondary:system", "full_size": true}'


@pytest.fixture
def loop() -> EventLoop:
    return EventLoop()


@pytest.fixture
def sink() -> LoggingEventSink:
    return LoggingEventSink()


@pytest.fixture
def live(loop, sink, tmp_path):
    process = SubprocessRenderer(
        binary=sys.executable,
        args=["-m", "src.adapters.render.mpl_renderer"],
        dispatch=loop.post,
    )
    gen = create_generator(
        process=process,
        store=ScratchStore(str(tmp_path / "scratch")),
        clock=SystemClock(),
        scheduler=loop,
        events=sink,
        config=GeneratorConfig(
            working_directory=str(PROJECT_ROOT),
            image_types={"cpu": CPU},
            report=ReportConfig(root_dir=tmp_path / "reports", tick_seconds=0.05),
        ),
    )
    assert gen.start()
    yield gen
    gen.close()
    loop.run_until(lambda: not sink.ready, timeout=TIMEOUT)


def test_renders_image(live, loop, sink) -> None:
    live.get_image(1, "cpu", 0, 3600, (320, 160), False, "")

    assert loop.run_until(lambda: 1 in sink.images or bool(sink.errors), timeout=TIMEOUT)
    assert sink.errors == []
    assert Path(sink.images[1]).read_bytes().startswith(b"\x89PNG")


def test_render_error_reported(live, loop, sink) -> None:
    live.register_image_type("broken", '{"command": "--width 0"}')
    live.get_image(1, "broken", 0, 3600, (320, 160), True, "")

    assert loop.run_until(lambda: bool(sink.errors), timeout=TIMEOUT)
    assert 1 not in sink.images
    assert live.ready


def test_report(live, loop, sink) -> None:
    directory = live.make_report(0, 3600, (640, 320))

    assert loop.run_until(lambda: bool(sink.reports), timeout=TIMEOUT)
    assert sink.reports == [directory]
    assert (Path(directory) / "cpu.png").read_bytes().startswith(b"\x89PNG")
    assert not sink.reporting


def test_stop_is_not_an_error(live, loop, sink) -> None:
    live.stop()
    assert loop.run_until(lambda: not sink.ready, timeout=TIMEOUT)
    assert sink.errors == []


def test_missing_binary(tmp_path) -> None:
    process = SubprocessRenderer(binary=str(tmp_path / "no-rrdtool"))
    with pytest.raises(RendererLaunchError):
        process.launch(None, lambda chunk: None, lambda code: None)
