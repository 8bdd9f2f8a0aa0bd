"""
Subprocess renderer adapter.

Runs the renderer (`rrdtool -` by default) with stdin/stdout pipes and
stderr merged into stdout. A daemon reader thread forwards output lines and
the final exit code through `dispatch`, which must hand them over to the
control thread (EventLoop.post in production).
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence

from src.core.ports.renderer import ExitHandler, OutputHandler, RendererLaunchError

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


def _call_now(callback: Callable[[], None]) -> None:
    callback()


class SubprocessRenderer:
    """RendererProcessPort backed by subprocess.Popen."""

    def __init__(
        self,
        binary: str = "rrdtool",
        args: Sequence[str] = ("-",),
        dispatch: Dispatch | None = None,
        terminate_timeout: float = 5.0,
    ) -> None:
        self.binary = binary
        self.args = list(args)
        self._dispatch = dispatch or _call_now
        self._terminate_timeout = terminate_timeout
        self._proc: subprocess.Popen[str] | None = None
        self._reader: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    def launch(
        self,
        working_directory: str | None,
        on_output: OutputHandler,
        on_exit: ExitHandler,
    ) -> None:
        if self.is_running:
            raise RendererLaunchError("Renderer process already running")

        command = [self.binary, *self.args]
        try:
            self._proc = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=working_directory or None,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            self._proc = None
            raise RendererLaunchError(f"Cannot launch {' '.join(command)}: {e}") from e

        logger.debug("Launched %s (pid %d)", self.binary, self._proc.pid)
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(self._proc, on_output, on_exit),
            name=f"renderer-reader-{self._proc.pid}",
            daemon=True,
        )
        self._reader.start()

    def _read_loop(
        self,
        proc: subprocess.Popen[str],
        on_output: OutputHandler,
        on_exit: ExitHandler,
    ) -> None:
        assert proc.stdout is not None
        for line in iter(proc.stdout.readline, ""):
            self._dispatch(lambda line=line: on_output(line))
        exit_code = proc.wait()
        self._dispatch(lambda: on_exit(exit_code))

    def write(self, text: str) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise RuntimeError("Renderer process not launched")
        try:
            self._proc.stdin.write(text)
            self._proc.stdin.flush()
        except (BrokenPipeError, ValueError) as e:
            # The reader thread reports the exit
            logger.error("Renderer pipe closed: %s", e)

    def terminate(self) -> None:
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        if proc.stdin is not None:
            try:
                proc.stdin.write("quit\n")
                proc.stdin.close()
            except (BrokenPipeError, ValueError):
                pass
        try:
            proc.wait(timeout=self._terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Renderer did not quit, terminating pid %d", proc.pid)
            proc.terminate()
            try:
                proc.wait(timeout=self._terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.error("Renderer ignored SIGTERM, killing pid %d", proc.pid)
                proc.kill()
                proc.wait()
