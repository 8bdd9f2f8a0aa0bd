from __future__ import annotations

import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from src.adapters.fs.filestore import ScratchStore
from src.components.generator import Generator, GeneratorConfig, create_generator
from src.core.ports.renderer import ExitHandler, OutputHandler, RendererLaunchError
from src.core.services.report import ReportConfig

FAKE_PNG = b"\x89PNG\r\n\x1a\nfake"


# --- Fakes ---


@dataclass
class FakeRendererProcess:
    """In-memory renderer process. Tests play the renderer's part by hand."""

    launch_error: str | None = None
    written: list[str] = field(default_factory=list)
    launches: int = 0
    working_directory: str | None = None
    running: bool = False
    on_output: OutputHandler | None = None
    on_exit: ExitHandler | None = None
    # When set, terminate() holds the exit back until deliver_exits()
    deferred_exit: bool = False
    pending_exits: list[ExitHandler] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.running

    def launch(self, working_directory, on_output, on_exit) -> None:
        if self.launch_error is not None:
            raise RendererLaunchError(self.launch_error)
        self.launches += 1
        self.working_directory = working_directory
        self.on_output = on_output
        self.on_exit = on_exit
        self.running = True

    def write(self, text: str) -> None:
        self.written.append(text.rstrip("\n"))

    def terminate(self) -> None:
        if self.running:
            self.running = False
            assert self.on_exit is not None
            if self.deferred_exit:
                self.pending_exits.append(self.on_exit)
            else:
                self.on_exit(0)

    def deliver_exits(self, exit_code: int = 0) -> None:
        exits, self.pending_exits = self.pending_exits, []
        for on_exit in exits:
            on_exit(exit_code)

    # --- Renderer side ---

    @property
    def graph_commands(self) -> list[str]:
        return [c for c in self.written if c.startswith("graph ")]

    def output_path(self, command: str) -> str:
        return shlex.split(command)[1]

    def emit(self, *lines: str) -> None:
        assert self.on_output is not None
        self.on_output("".join(line + "\n" for line in lines))

    def respond_ok(self, size: str = "497x214") -> None:
        """Answer the last written command successfully, writing its image."""
        command = self.written[-1]
        if command.startswith("graph "):
            Path(self.output_path(command)).write_bytes(FAKE_PNG)
            self.emit(size, "OK u:0.00 s:0.00 r:0.01")
        else:
            self.emit("OK u:0.00 s:0.00 r:0.00")

    def respond_error(self, message: str = "opening 'cpu.rrd': No such file or directory") -> None:
        self.emit(f"ERROR: {message}")

    def crash(self, exit_code: int = 1, output: str = "") -> None:
        if output:
            self.emit(output)
        self.running = False
        assert self.on_exit is not None
        self.on_exit(exit_code)


@dataclass
class ManualScheduler:
    """SchedulerPort driven by `advance`."""

    now: float = 0.0
    timers: list[list] = field(default_factory=list)  # [due, seq, callback, cancelled]
    seq: int = 0

    def call_later(self, delay: float, callback: Callable[[], None]) -> list:
        self.seq += 1
        handle = [self.now + delay, self.seq, callback, False]
        self.timers.append(handle)
        return handle

    def cancel(self, handle: list) -> None:
        handle[3] = True

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t[3])

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.timers if not t[3] and t[0] <= target),
                key=lambda t: (t[0], t[1]),
            )
            if not due:
                break
            handle = due[0]
            self.timers.remove(handle)
            self.now = max(self.now, handle[0])
            handle[2]()
        self.now = target


@dataclass
class FakeClock:
    current: datetime = field(default_factory=lambda: datetime(2024, 6, 15, 12, 0, 0))

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class RecordingEvents:
    ready: list[bool] = field(default_factory=list)
    progress: list[float] = field(default_factory=list)
    reporting: list[bool] = field(default_factory=list)
    reports: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    images: list[tuple[int, str]] = field(default_factory=list)

    def ready_changed(self, ready: bool) -> None:
        self.ready.append(ready)

    def progress_changed(self, progress: float) -> None:
        self.progress.append(progress)

    def reporting_changed(self, active: bool) -> None:
        self.reporting.append(active)

    def reporting_complete(self, directory: str) -> None:
        self.reports.append(directory)

    def renderer_error(self, error_text: str) -> None:
        self.errors.append(error_text)

    def new_image(self, caller: int, fname: str) -> None:
        self.images.append((caller, fname))


# --- Fixtures ---


CPU_TEMPLATE = "DEF:v=cpu.rrd:value:AVERAGE LINE1:v$color_main:cpu"
MEM_TEMPLATE = '{"command": "DEF:m=mem.rrd:used:AVERAGE LINE1:m$color_main:mem", "full_size": true}'


@pytest.fixture
def renderer() -> FakeRendererProcess:
    return FakeRendererProcess()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def store(tmp_path: Path) -> ScratchStore:
    return ScratchStore(str(tmp_path / "scratch"))


@pytest.fixture
def report_root(tmp_path: Path) -> Path:
    return tmp_path / "reports"


@pytest.fixture
def generator_config(report_root: Path) -> GeneratorConfig:
    return GeneratorConfig(report=ReportConfig(root_dir=report_root, tick_seconds=1.0))


@pytest.fixture
def generator(renderer, store, clock, scheduler, events, generator_config) -> Generator:
    gen = create_generator(
        process=renderer,
        store=store,
        clock=clock,
        scheduler=scheduler,
        events=events,
        config=generator_config,
    )
    gen.register_image_type("cpu", CPU_TEMPLATE)
    gen.register_image_type("mem", MEM_TEMPLATE)
    return gen


@pytest.fixture
def started(generator: Generator, renderer: FakeRendererProcess) -> Generator:
    assert generator.start()
    return generator
