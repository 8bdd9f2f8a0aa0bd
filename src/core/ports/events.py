"""
Generator Events Port.

Observable events emitted by the generator to the UI binding layer.
"""

from __future__ import annotations

from typing import Protocol


class GeneratorEventsPort(Protocol):
    def ready_changed(self, ready: bool) -> None: ...

    def progress_changed(self, progress: float) -> None: ...

    def reporting_changed(self, active: bool) -> None: ...

    def reporting_complete(self, directory: str) -> None: ...

    def renderer_error(self, error_text: str) -> None: ...

    def new_image(self, caller: int, fname: str) -> None:
        """Image for `caller` is ready at `fname`."""
        ...
