"""
Domain entities for rrd-graph-generator.

- ImageTypeDescriptor: registered plot type and its renderer command template
- CacheKey: identity of a logical image request
- CachedArtifact: generated image file owned by the image cache
- PendingCommand: renderer command waiting for (or holding) the pipe
- ReportRun: one batch run producing an image per registered type

Invariants:
- Identical request parameters produce identical cache keys
- A PendingCommand continuation resolves exactly once
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = [
    "CacheKey",
    "CachedArtifact",
    "ErrorCode",
    "ImageTypeDescriptor",
    "PendingCommand",
    "PixelSize",
    "RenderError",
    "RenderResult",
    "ReportRun",
]


# --- Sizes ---


@dataclass(frozen=True)
class PixelSize:
    """Image size in pixels. Zero marks a dimension to be derived."""

    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def parse(cls, text: str) -> PixelSize:
        """Parse `WxH`. Raises ValueError on malformed input."""
        parts = text.strip().lower().split("x")
        if len(parts) != 2:
            raise ValueError(f"Invalid size: {text!r}")
        width, height = int(parts[0]), int(parts[1])
        if width < 0 or height < 0:
            raise ValueError(f"Negative size: {text!r}")
        return cls(width, height)

    @property
    def aspect_ratio(self) -> float:
        """Height over width."""
        return self.height / self.width if self.width else 0.0


# --- Errors ---


class ErrorCode(Enum):
    """Failure taxonomy for image requests."""

    PROCESS_LAUNCH_FAILURE = "process_launch_failure"
    PROCESS_CRASH = "process_crash"
    PROCESS_NOT_RUNNING = "process_not_running"
    UNREGISTERED_TYPE = "unregistered_type"
    RENDER_FAILURE = "render_failure"
    CACHE_IO_FAILURE = "cache_io_failure"


@dataclass(frozen=True)
class RenderError:
    """Render operation error."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class RenderResult:
    """Outcome of a single renderer command."""

    success: bool
    file_path: str | None = None
    pixel_size: PixelSize | None = None
    output: str = ""
    error: RenderError | None = None

    @classmethod
    def ok(
        cls, file_path: str | None, pixel_size: PixelSize | None = None, output: str = ""
    ) -> RenderResult:
        return cls(success=True, file_path=file_path, pixel_size=pixel_size, output=output)

    @classmethod
    def failed(cls, code: ErrorCode, message: str, output: str = "") -> RenderResult:
        return cls(success=False, output=output, error=RenderError(code, message))


# --- Image Types ---


@dataclass
class ImageTypeDescriptor:
    """
    Registered plot type.

    `full_image_pixel_size` is updated whenever a full-size variant of this
    type is rendered, and is used to derive a missing dimension of later
    requests.
    """

    type_name: str
    command_template: str
    is_full_size: bool = False
    font_size_overrides: dict[str, int] = field(default_factory=dict)
    full_image_pixel_size: PixelSize | None = None


# --- Cache ---


@dataclass(frozen=True)
class CacheKey:
    """Deterministic identity of an image request."""

    type_name: str
    from_timestamp: float
    duration: float
    width: int
    height: int
    full_size: bool

    def __str__(self) -> str:
        return (
            f"{self.type_name}|{self.from_timestamp:.3f}|{self.duration:.3f}|"
            f"{self.width}x{self.height}|{'full' if self.full_size else 'thumb'}"
        )

    @property
    def size(self) -> PixelSize:
        return PixelSize(self.width, self.height)


@dataclass(frozen=True)
class CachedArtifact:
    """Generated image held by the cache."""

    key: CacheKey
    file_path: str
    pixel_size: PixelSize | None
    created_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds()

    def exists(self) -> bool:
        return Path(self.file_path).is_file()


# --- Commands ---


@dataclass
class PendingCommand:
    """
    Renderer command plus its completion continuation.

    `output_path` is the artifact file the command writes, if any.
    """

    sequence_id: int
    raw_command_text: str
    on_complete: Callable[[RenderResult], None]
    output_path: str | None = None
    resolved: bool = False

    def resolve(self, result: RenderResult) -> None:
        """Fire the continuation. Raises RuntimeError on a second call."""
        if self.resolved:
            raise RuntimeError(f"Command {self.sequence_id} resolved twice")
        self.resolved = True
        self.on_complete(result)


# --- Reports ---


@dataclass
class ReportRun:
    """Active report batch."""

    run_id: int
    from_timestamp: float
    duration: float
    target_size: PixelSize
    output_directory: Path
    remaining_type_list: list[str]
    total_count: int
    completed_count: int = 0
    issued_count: int = 0

    @property
    def finished(self) -> bool:
        return not self.remaining_type_list and self.completed_count >= self.total_count

    @property
    def outstanding(self) -> int:
        return self.total_count - self.completed_count
