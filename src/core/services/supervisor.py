"""
ProcessSupervisor - Lifecycle of the single renderer process.

States: STOPPED -> STARTING -> READY <-> BUSY, CRASHED on unexpected exit.

Key behaviors:
- Exactly one process instance, owned here
- Launch failure leaves the supervisor STOPPED and reports an error
- Unexpected exit moves to CRASHED and hands the captured output to the
  exit listener; requested stops move to STOPPED
- Never restarts on its own
- Output and exits from an earlier launch are ignored after a stop or
  restart
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from src.core.entities import ErrorCode, RenderError
from src.core.ports.renderer import RendererLaunchError, RendererProcessPort

logger = logging.getLogger(__name__)

# Captured output kept for crash diagnostics
OUTPUT_BUFFER_LIMIT = 8192


class ProcessState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    BUSY = "busy"
    CRASHED = "crashed"


class ProcessSupervisor:
    """
    Renderer process supervisor.

    Listeners are plain callables wired by the owner:
    - on_ready_changed(ready)
    - on_output(chunk)
    - on_exit(error_or_none, captured_output)
    - on_error(error) for launch failures
    """

    def __init__(self, process: RendererProcessPort) -> None:
        self._process = process
        self._state = ProcessState.STOPPED
        self._stop_requested = False
        self._output_buffer = ""
        # Identifies the current launch; callbacks of older launches are stale
        self._launch_id = 0
        self.working_directory: str | None = None

        self.on_ready_changed: Callable[[bool], None] = lambda ready: None
        self.on_output: Callable[[str], None] = lambda chunk: None
        self.on_exit: Callable[[RenderError | None, str], None] = lambda error, output: None
        self.on_error: Callable[[RenderError], None] = lambda error: None

    # --- State ---

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def ready(self) -> bool:
        """True while the process is up (idle or busy)."""
        return self._state in (ProcessState.READY, ProcessState.BUSY)

    @property
    def running(self) -> bool:
        return self._state in (ProcessState.STARTING, ProcessState.READY, ProcessState.BUSY)

    def _set_state(self, state: ProcessState) -> None:
        was_ready = self.ready
        self._state = state
        if was_ready != self.ready:
            self.on_ready_changed(self.ready)

    # --- Lifecycle ---

    def start(self, working_directory: str | None = None) -> bool:
        """
        Launch the renderer.

        Returns True once the process is READY. Starting an already running
        supervisor is a no-op.
        """
        if self.running:
            logger.debug("Renderer already running (%s)", self._state.value)
            return True

        if working_directory is not None:
            self.working_directory = working_directory

        self._stop_requested = False
        self._output_buffer = ""
        self._launch_id += 1
        launch_id = self._launch_id
        self._set_state(ProcessState.STARTING)

        try:
            self._process.launch(
                self.working_directory,
                lambda chunk: self._handle_output(launch_id, chunk),
                lambda exit_code: self._handle_exit(launch_id, exit_code),
            )
        except RendererLaunchError as e:
            logger.error("Failed to launch renderer: %s", e)
            self._set_state(ProcessState.STOPPED)
            self.on_error(RenderError(ErrorCode.PROCESS_LAUNCH_FAILURE, str(e)))
            return False

        # Exit may have been delivered synchronously by a dying process
        if self._state != ProcessState.STARTING:
            return False

        logger.info("Renderer started (cwd: %s)", self.working_directory or ".")
        self._set_state(ProcessState.READY)
        return True

    def stop(self) -> None:
        """Request shutdown. The resulting exit is not reported as a crash."""
        if not self.running:
            return
        self._stop_requested = True
        self._process.terminate()

        # The exit is usually delivered later through the event loop
        if self.running:
            self._finish_stop(None)

    # --- Command I/O ---

    def send(self, command_text: str) -> None:
        """Write a command. READY -> BUSY."""
        if self._state != ProcessState.READY:
            raise RuntimeError(f"Renderer cannot accept a command while {self._state.value}")
        self._set_state(ProcessState.BUSY)
        logger.debug("-> %s", command_text)
        self._process.write(command_text + "\n")

    def mark_idle(self) -> None:
        """Response received. BUSY -> READY."""
        if self._state == ProcessState.BUSY:
            self._set_state(ProcessState.READY)

    # --- Process notifications ---

    def _handle_output(self, launch_id: int, chunk: str) -> None:
        if launch_id != self._launch_id:
            logger.debug("Ignoring output from a previous renderer launch")
            return
        self._output_buffer = (self._output_buffer + chunk)[-OUTPUT_BUFFER_LIMIT:]
        self.on_output(chunk)

    def _handle_exit(self, launch_id: int, exit_code: int | None) -> None:
        if launch_id != self._launch_id:
            logger.debug("Ignoring exit code %s of a previous renderer launch", exit_code)
            return

        if self._stop_requested:
            self._finish_stop(exit_code)
            return

        captured = self._output_buffer
        logger.error("Renderer exited unexpectedly (exit code %s)", exit_code)
        self._set_state(ProcessState.CRASHED)
        error = RenderError(
            ErrorCode.PROCESS_CRASH,
            f"Renderer exited unexpectedly (exit code {exit_code})\n{captured}".rstrip(),
        )
        self.on_exit(error, captured)

    def _finish_stop(self, exit_code: int | None) -> None:
        captured = self._output_buffer
        self._stop_requested = False
        self._launch_id += 1
        logger.info("Renderer stopped (exit code %s)", exit_code)
        self._set_state(ProcessState.STOPPED)
        self.on_exit(None, captured)
