"""
CommandQueue - Serializes renderer commands onto the single pipe.

Key behaviors:
- Strict FIFO; responses are matched to commands by submission order
- At most one command in flight at any time
- Output is accumulated until an `OK` or `ERROR:` terminator line
- Process exit fails the in-flight command and every queued command
- Commands submitted while the renderer is not running fail at once

rrdtool pipe response format:

    481x155          (graph only: image size)
    OK u:0.01 s:0.00 r:0.02

    ERROR: opening 'x.rrd': No such file or directory
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Callable

from src.core.entities import (
    ErrorCode,
    PendingCommand,
    PixelSize,
    RenderError,
    RenderResult,
)
from src.core.services.supervisor import ProcessState, ProcessSupervisor

logger = logging.getLogger(__name__)

_SIZE_LINE = re.compile(r"^(\d+)x(\d+)$")
_OK_PREFIX = "OK"
_ERROR_PREFIX = "ERROR"


def parse_response(lines: list[str], output_path: str | None) -> RenderResult:
    """
    Parse the accumulated lines of one response (terminator included).

    The artifact path comes from the command itself; the renderer only
    reports the image size.
    """
    output = "\n".join(lines)
    terminator = lines[-1] if lines else ""

    if terminator.startswith(_ERROR_PREFIX):
        message = terminator.partition(":")[2].strip() or terminator
        return RenderResult.failed(ErrorCode.RENDER_FAILURE, message, output=output)

    pixel_size = None
    for line in lines[:-1]:
        match = _SIZE_LINE.match(line.strip())
        if match:
            pixel_size = PixelSize(int(match.group(1)), int(match.group(2)))

    return RenderResult.ok(output_path, pixel_size, output=output)


def is_terminator(line: str) -> bool:
    return line == _OK_PREFIX or line.startswith(_OK_PREFIX + " ") or line.startswith(_ERROR_PREFIX)


class CommandQueue:
    """
    Renderer command pipeline.

    Wires itself into the supervisor's output and exit listeners.
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        on_error: Callable[[RenderError], None] | None = None,
    ) -> None:
        self._supervisor = supervisor
        self._on_error = on_error or (lambda error: None)
        self._queue: deque[PendingCommand] = deque()
        self._in_flight: PendingCommand | None = None
        self._partial = ""
        self._response_lines: list[str] = []
        self._next_sequence_id = 0

        supervisor.on_output = self._handle_output
        supervisor.on_exit = self._handle_exit
        previous_ready = supervisor.on_ready_changed

        def ready_changed(ready: bool) -> None:
            previous_ready(ready)
            if ready:
                self._promote()

        supervisor.on_ready_changed = ready_changed

    # --- Observers ---

    @property
    def in_flight(self) -> PendingCommand | None:
        return self._in_flight

    @property
    def pending_count(self) -> int:
        """Commands waiting behind the in-flight one."""
        return len(self._queue)

    @property
    def busy(self) -> bool:
        return self._in_flight is not None or bool(self._queue)

    # --- Submission ---

    def enqueue(
        self,
        command_text: str,
        on_complete: Callable[[RenderResult], None],
        output_path: str | None = None,
    ) -> PendingCommand:
        """
        Append a command to the tail.

        If the renderer is not running the command fails immediately with
        `process_not_running`.
        """
        self._next_sequence_id += 1
        command = PendingCommand(
            sequence_id=self._next_sequence_id,
            raw_command_text=command_text,
            on_complete=on_complete,
            output_path=output_path,
        )

        if not self._supervisor.running:
            error = RenderError(
                ErrorCode.PROCESS_NOT_RUNNING,
                f"Renderer is not running ({self._supervisor.state.value})",
            )
            logger.warning("Rejecting command %d: %s", command.sequence_id, error.message)
            self._on_error(error)
            command.resolve(RenderResult(success=False, error=error))
            return command

        self._queue.append(command)
        self._promote()
        return command

    def _promote(self) -> None:
        """Send the head of the queue if the pipe is free."""
        if self._in_flight is not None or not self._queue:
            return
        if self._supervisor.state != ProcessState.READY:
            return

        command = self._queue.popleft()
        self._in_flight = command
        self._partial = ""
        self._response_lines = []
        self._supervisor.send(command.raw_command_text)

    # --- Response handling ---

    def _handle_output(self, chunk: str) -> None:
        self._partial += chunk.replace("\r\n", "\n")
        while "\n" in self._partial:
            line, self._partial = self._partial.split("\n", 1)
            line = line.rstrip()
            if not line:
                continue
            if self._in_flight is None:
                logger.warning("Unexpected renderer output: %s", line)
                continue
            self._response_lines.append(line)
            if is_terminator(line):
                self._complete(parse_response(self._response_lines, self._in_flight.output_path))

    def _complete(self, result: RenderResult) -> None:
        command = self._in_flight
        self._in_flight = None
        self._response_lines = []

        if command is None:
            return

        if result.success:
            logger.debug("Command %d done: %s", command.sequence_id, result.pixel_size)
        else:
            logger.warning("Command %d failed: %s", command.sequence_id, result.error)
            if result.error is not None:
                self._on_error(result.error)

        try:
            command.resolve(result)
        finally:
            self._supervisor.mark_idle()
            self._promote()

    def _handle_exit(self, error: RenderError | None, captured_output: str) -> None:
        """Fail everything that is waiting; the queue halts until restarted."""
        if error is not None:
            self._on_error(error)
        else:
            error = RenderError(ErrorCode.PROCESS_NOT_RUNNING, "Renderer was stopped")

        failed = [self._in_flight] if self._in_flight is not None else []
        failed.extend(self._queue)
        self._in_flight = None
        self._queue.clear()
        self._partial = ""
        self._response_lines = []

        for command in failed:
            command.resolve(RenderResult(success=False, output=captured_output, error=error))
