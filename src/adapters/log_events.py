"""
Logging event sink.

Logs every generator event and keeps the latest values around so a
command-line driver can wait on them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class LoggingEventSink:
    """GeneratorEventsPort that logs and records events."""

    level: int = logging.INFO
    ready: bool = False
    progress: float = -1.0
    reporting: bool = False
    images: dict[int, str] = field(default_factory=dict)
    reports: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def ready_changed(self, ready: bool) -> None:
        self.ready = ready
        logger.log(self.level, "Renderer %s", "ready" if ready else "not ready")

    def progress_changed(self, progress: float) -> None:
        self.progress = progress
        if progress >= 0:
            logger.debug("Progress %.0f%%", progress * 100)

    def reporting_changed(self, active: bool) -> None:
        self.reporting = active
        logger.log(self.level, "Reporting %s", "started" if active else "finished")

    def reporting_complete(self, directory: str) -> None:
        self.reports.append(directory)
        logger.log(self.level, "Report saved to %s", directory)

    def renderer_error(self, error_text: str) -> None:
        self.errors.append(error_text)
        logger.error("Renderer error: %s", error_text)

    def new_image(self, caller: int, fname: str) -> None:
        self.images[caller] = fname
        logger.log(self.level, "Image for %d: %s", caller, fname)
