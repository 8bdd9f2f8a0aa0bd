"""
Renderer Process Port.

Protocol-based interface for the single external renderer process
(rrdtool in pipe mode, or the matplotlib dev renderer).

Key requirements:
- One process instance at a time, owned by the ProcessSupervisor
- Output and exit notifications are delivered on the control thread
- The process is never restarted implicitly
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

OutputHandler = Callable[[str], None]
ExitHandler = Callable[[int | None], None]


class RendererLaunchError(Exception):
    """Renderer binary could not be launched."""


class RendererProcessPort(Protocol):
    """
    Raw renderer process.

    Implementations call `on_output` with decoded output chunks and
    `on_exit` with the exit code once the process has gone away.
    """

    def launch(
        self,
        working_directory: str | None,
        on_output: OutputHandler,
        on_exit: ExitHandler,
    ) -> None:
        """
        Launch the process bound to stdin/stdout pipes.

        Raises:
            RendererLaunchError: If the binary cannot be started
        """
        ...

    def write(self, text: str) -> None:
        """Write one command line to the process input."""
        ...

    def terminate(self) -> None:
        """Stop the process. `on_exit` still fires."""
        ...

    @property
    def is_running(self) -> bool:
        """True while the process is alive."""
        ...
