"""
Generator component - rrdtool graph generation, caching and reports.
"""

from .component import Generator, create_generator
from .models import GeneratorConfig
from .ports import (
    ArtifactStorePort,
    ClockPort,
    GeneratorEventsPort,
    RendererProcessPort,
    SchedulerPort,
)

__all__ = [
    # Entry points
    "Generator",
    "create_generator",
    # Models
    "GeneratorConfig",
    # Ports
    "ArtifactStorePort",
    "ClockPort",
    "GeneratorEventsPort",
    "RendererProcessPort",
    "SchedulerPort",
]
