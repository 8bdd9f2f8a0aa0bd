"""
ReportGenerator - Renders one full-size image per registered type into a
timestamped report directory.

States: IDLE -> RUNNING -> IDLE

Key behaviors:
- The type list is snapshotted when the run starts
- One type is issued per tick, and only while the command queue is idle
- Completion is counted from render callbacks, failures included
- A new run supersedes the active one; late callbacks of the old run are
  ignored and its pending tick is cancelled
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from src.core.entities import ErrorCode, PixelSize, RenderError, RenderResult, ReportRun
from src.core.ports.storage import ArtifactStorePort
from src.core.ports.time import ClockPort, SchedulerPort
from src.core.services.command_queue import CommandQueue
from src.core.services.dispatcher import RequestDispatcher
from src.core.services.progress import ProgressTracker

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class ReportState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class ReportConfig:
    root_dir: Path = Path("~/Documents/SystemDataScope").expanduser()
    tick_seconds: float = 0.25
    dir_format: str = "%Y-%m-%d_%H-%M-%S"
    image_suffix: str = ".png"


DEFAULT_REPORT_CONFIG = ReportConfig()


def report_filename(type_name: str, suffix: str = ".png") -> str:
    """File name for a type's image inside a report directory."""
    name = _UNSAFE_FILENAME.sub("_", type_name).strip("._") or "image"
    return name + suffix


def report_filenames(type_names: list[str], suffix: str = ".png") -> dict[str, str]:
    """Map each type to a file name, adding `-N` where sanitized names collide."""
    names: dict[str, str] = {}
    taken: set[str] = set()
    for type_name in type_names:
        base = report_filename(type_name, suffix="")
        name = base + suffix
        counter = 1
        while name.lower() in taken:
            name = f"{base}-{counter}{suffix}"
            counter += 1
        taken.add(name.lower())
        names[type_name] = name
    return names


class ReportGenerator:
    """
    Report state machine.

    `on_reporting_changed(active)`, `on_complete(directory)` and `on_error` are
    wired by the owner. Render failures are already reported as renderer
    errors by the dispatcher and queue; `on_error` carries the failures the
    report itself hits (rejected requests, copies into the directory).
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        queue: CommandQueue,
        store: ArtifactStorePort,
        clock: ClockPort,
        scheduler: SchedulerPort,
        progress: ProgressTracker,
        on_reporting_changed: Callable[[bool], None],
        on_complete: Callable[[str], None],
        on_error: Callable[[RenderError], None],
        config: ReportConfig | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._queue = queue
        self._store = store
        self._clock = clock
        self._scheduler = scheduler
        self._progress = progress
        self._on_reporting_changed = on_reporting_changed
        self._on_complete = on_complete
        self._on_error = on_error
        self._config = config or DEFAULT_REPORT_CONFIG

        self._run: ReportRun | None = None
        self._next_run_id = 0
        self._tick_handle: Any = None
        self._file_names: dict[str, str] = {}

    @property
    def state(self) -> ReportState:
        return ReportState.RUNNING if self._run is not None else ReportState.IDLE

    @property
    def reporting(self) -> bool:
        return self._run is not None

    @property
    def current_run(self) -> ReportRun | None:
        return self._run

    def make_report(self, from_timestamp: float, duration: float, size: PixelSize) -> Path:
        """Start a report run, superseding any active one. Returns its directory."""
        if size.width <= 0 and size.height <= 0:
            raise ValueError(f"Report image size {size.width}x{size.height} has no usable dimension")

        was_running = self._run is not None
        if self._run is not None:
            self._abandon()

        self._next_run_id += 1
        stamp = self._clock.now().strftime(self._config.dir_format)
        output_directory = self._store.make_report_dir(self._config.root_dir, stamp)
        types = self._dispatcher.type_names()

        logger.info("Report started: %d image types -> %s", len(types), output_directory)

        if not types:
            logger.warning("Report requested with no registered image types")
            if was_running:
                self._on_reporting_changed(False)
            self._on_complete(str(output_directory))
            return output_directory

        self._run = ReportRun(
            run_id=self._next_run_id,
            from_timestamp=from_timestamp,
            duration=duration,
            target_size=size,
            output_directory=output_directory,
            remaining_type_list=types,
            total_count=len(types),
        )
        self._file_names = report_filenames(types, self._config.image_suffix)
        self._progress.expect(len(types))
        if not was_running:
            self._on_reporting_changed(True)
        self._schedule_tick(0.0)
        return output_directory

    def cancel(self) -> None:
        """Abandon the active run, if any, without a completion event."""
        if self._run is None:
            return
        self._abandon()
        self._on_reporting_changed(False)

    def _abandon(self) -> None:
        run = self._run
        if run is None:
            return
        logger.info("Report %d superseded (%d images outstanding)", run.run_id, run.outstanding)
        self._progress.cancel(run.outstanding)
        if self._tick_handle is not None:
            self._scheduler.cancel(self._tick_handle)
            self._tick_handle = None
        self._run = None

    def _schedule_tick(self, delay: float) -> None:
        self._tick_handle = self._scheduler.call_later(delay, self._tick)

    def _tick(self) -> None:
        self._tick_handle = None
        run = self._run
        if run is None or not run.remaining_type_list:
            return

        # Pace against the renderer: one report image at a time
        if self._queue.busy:
            self._schedule_tick(self._config.tick_seconds)
            return

        type_name = run.remaining_type_list.pop(0)
        run.issued_count += 1
        run_id = run.run_id
        logger.debug("Report %d: rendering %s (%d/%d)", run_id, type_name, run.issued_count, run.total_count)

        def collect(result: RenderResult) -> None:
            self._collect(run_id, type_name, result)

        try:
            self._dispatcher.request(
                type_name,
                run.from_timestamp,
                run.duration,
                run.target_size,
                True,
                collect,
                track_progress=False,
            )
        except ValueError as e:
            error = RenderError(ErrorCode.RENDER_FAILURE, f"{type_name}: {e}")
            self._on_error(error)
            collect(RenderResult(success=False, error=error))

        if self._run is not None and self._run.run_id == run_id and run.remaining_type_list:
            self._schedule_tick(self._config.tick_seconds)

    def _collect(self, run_id: int, type_name: str, result: RenderResult) -> None:
        run = self._run
        if run is None or run.run_id != run_id:
            logger.debug("Ignoring result for superseded report %d", run_id)
            return

        if result.success and result.file_path is not None:
            target = run.output_directory / self._file_names[type_name]
            try:
                self._store.copy_to(result.file_path, target)
            except OSError as e:
                logger.error("Could not save %s to report: %s", type_name, e)
                self._on_error(RenderError(ErrorCode.CACHE_IO_FAILURE, f"Could not save {type_name} to report: {e}"))
        else:
            logger.warning("Report image %s failed: %s", type_name, result.error)

        run.completed_count += 1
        self._progress.complete()

        if run.finished:
            self._finish(run)

    def _finish(self, run: ReportRun) -> None:
        self._run = None
        logger.info("Report %d complete: %s", run.run_id, run.output_directory)
        self._on_reporting_changed(False)
        self._on_complete(str(run.output_directory))
