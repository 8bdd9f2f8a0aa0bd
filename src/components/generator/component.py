"""
Generator component - Control API for rrdtool graph generation.

Wires the process supervisor, command queue, image cache, request
dispatcher, report generator and progress tracker together, and forwards
their notifications to a GeneratorEventsPort.

Invariants:
- At most one renderer command in flight
- Every image request is answered at most once per caller, and never with
  an image when it failed
- `reporting` is true strictly while a report run is active
"""

from __future__ import annotations

import logging
from typing import Any

from src.core.entities import PixelSize, RenderError, RenderResult
from src.core.services.command_builder import CommandBuilder
from src.core.services.command_queue import CommandQueue
from src.core.services.dispatcher import RequestDispatcher
from src.core.services.image_cache import ImageCache
from src.core.services.progress import ProgressTracker
from src.core.services.report import ReportGenerator
from src.core.services.supervisor import ProcessState, ProcessSupervisor

from .models import GeneratorConfig
from .ports import (
    ArtifactStorePort,
    ClockPort,
    GeneratorEventsPort,
    RendererProcessPort,
    SchedulerPort,
)

logger = logging.getLogger(__name__)

SizeLike = PixelSize | tuple[int, int]


def _as_size(size: SizeLike) -> PixelSize:
    if isinstance(size, PixelSize):
        return size
    width, height = size
    return PixelSize(int(width), int(height))


class Generator:
    """
    Generates RRD plots through a single renderer process.

    All methods must be called from the control thread (the thread running
    the event loop that delivers renderer output and timer callbacks).
    """

    def __init__(
        self,
        process: RendererProcessPort,
        store: ArtifactStorePort,
        clock: ClockPort,
        scheduler: SchedulerPort,
        events: GeneratorEventsPort,
        config: GeneratorConfig | None = None,
    ) -> None:
        config = config or GeneratorConfig()
        self._events = events
        self._store = store

        self._supervisor = ProcessSupervisor(process)
        self._supervisor.working_directory = config.working_directory
        # Must be wired before the queue chains onto it
        self._supervisor.on_ready_changed = events.ready_changed
        self._supervisor.on_error = self._error
        self._queue = CommandQueue(self._supervisor, on_error=self._error)

        self._builder = CommandBuilder(
            image_format=config.image_format,
            font_sizes=dict(config.font_sizes),
        )
        if config.color_main is not None or config.color_secondary is not None:
            self._builder.set_colors(config.color_main, config.color_secondary)

        self._cache = ImageCache(store, config.cache)
        self._progress = ProgressTracker(on_change=events.progress_changed)
        self._dispatcher = RequestDispatcher(
            queue=self._queue,
            cache=self._cache,
            builder=self._builder,
            store=store,
            clock=clock,
            progress=self._progress,
            on_image=events.new_image,
            on_error=self._error,
            config=config.dispatcher,
        )
        self._reporter = ReportGenerator(
            dispatcher=self._dispatcher,
            queue=self._queue,
            store=store,
            clock=clock,
            scheduler=scheduler,
            progress=self._progress,
            on_reporting_changed=events.reporting_changed,
            on_complete=events.reporting_complete,
            on_error=self._error,
            config=config.report,
        )

        for type_name, command_json in config.image_types.items():
            self.register_image_type(type_name, command_json)

    # --- Properties ---

    @property
    def ready(self) -> bool:
        """True while the renderer is working."""
        return self._supervisor.ready

    @property
    def progress(self) -> float:
        """Fraction of the current burst done, negative when idle."""
        return self._progress.progress

    @property
    def reporting(self) -> bool:
        return self._reporter.reporting

    @property
    def process_state(self) -> ProcessState:
        return self._supervisor.state

    @property
    def queue(self) -> CommandQueue:
        return self._queue

    @property
    def cache(self) -> ImageCache:
        return self._cache

    # --- Lifecycle ---

    def start(self, working_directory: str | None = None) -> bool:
        return self._supervisor.start(working_directory)

    def stop(self) -> None:
        self._supervisor.stop()

    def close(self) -> None:
        """Cancel any report, stop the renderer and remove all transient images."""
        self._reporter.cancel()
        self._supervisor.stop()
        self._cache.drop_all()
        self._store.cleanup()

    # --- Control API ---

    def set_image_cache_timeout(self, timeout: float) -> None:
        self._cache.set_timeout(timeout)

    def check_cache(self) -> int:
        """Evict expired images. Call periodically."""
        return self._dispatcher.check_cache()

    def chdir(self, directory: str) -> None:
        """Change the renderer working directory, in order with queued commands."""
        self._supervisor.working_directory = directory
        if not self._supervisor.running:
            logger.debug("Renderer not running; %s used on next start", directory)
            return

        def changed(result: RenderResult) -> None:
            if result.success:
                logger.info("Renderer working directory: %s", directory)

        self._queue.enqueue(self._builder.build_chdir(directory), changed)

    def register_image_type(self, type_name: str, command_json: str) -> None:
        self._dispatcher.register(type_name, command_json)

    def is_type_registered(self, type_name: str) -> bool:
        return self._dispatcher.is_registered(type_name)

    def drop_all_image_types(self) -> None:
        self._dispatcher.drop_all()

    def set_font_size(self, font_tag: str, size: int) -> None:
        """Font size for an rrdtool FONTTAG; applies to all images."""
        self._builder.set_font_size(font_tag, size)

    def get_image(
        self,
        caller: int,
        plot_type: str,
        from_timestamp: float,
        duration: float,
        size: SizeLike,
        full_size: bool,
        current_fname: str = "",
    ) -> None:
        """
        Ask for an image for `caller`.

        A cached image is sent back only if it differs from `current_fname`;
        otherwise the image is generated and `new_image` is emitted when ready.
        """
        self._dispatcher.get_image(
            caller,
            plot_type,
            from_timestamp,
            duration,
            _as_size(size),
            full_size,
            current_fname,
        )

    def make_report(self, from_timestamp: float, duration: float, size: SizeLike) -> str:
        """Start a report run. Returns the report directory."""
        return str(self._reporter.make_report(from_timestamp, duration, _as_size(size)))

    def set_single_line_colors(self, main_color: Any = None, secondary_color: Any = None) -> None:
        """Colors for single-line plots; without arguments fills in defaults for unset ones."""
        self._builder.set_colors(main_color, secondary_color)

    # --- Notifications ---

    def _error(self, error: RenderError) -> None:
        self._events.renderer_error(error.message)


def create_generator(
    process: RendererProcessPort,
    store: ArtifactStorePort,
    clock: ClockPort,
    scheduler: SchedulerPort,
    events: GeneratorEventsPort,
    config: GeneratorConfig | None = None,
) -> Generator:
    """Create a Generator."""
    return Generator(
        process=process,
        store=store,
        clock=clock,
        scheduler=scheduler,
        events=events,
        config=config,
    )
