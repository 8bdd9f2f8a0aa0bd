"""
Generator component configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.core.services.dispatcher import DEFAULT_DISPATCHER_CONFIG, DispatcherConfig
from src.core.services.image_cache import DEFAULT_CACHE_CONFIG, CacheConfig
from src.core.services.report import DEFAULT_REPORT_CONFIG, ReportConfig


@dataclass(frozen=True)
class GeneratorConfig:
    """Everything the generator needs besides its ports."""

    working_directory: str | None = None
    image_format: str = "PNG"
    font_sizes: dict[str, int] = field(default_factory=dict)
    color_main: str | None = None
    color_secondary: str | None = None
    # type name -> registration command JSON (or bare template)
    image_types: dict[str, str] = field(default_factory=dict)
    cache: CacheConfig = DEFAULT_CACHE_CONFIG
    dispatcher: DispatcherConfig = DEFAULT_DISPATCHER_CONFIG
    report: ReportConfig = DEFAULT_REPORT_CONFIG
