# rrd-graph-generator - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.events import GeneratorEventsPort
from src.core.ports.renderer import (
    ExitHandler,
    OutputHandler,
    RendererLaunchError,
    RendererProcessPort,
)
from src.core.ports.storage import ArtifactStorePort
from src.core.ports.time import ClockPort, SchedulerPort

__all__ = [
    "ArtifactStorePort",
    "ClockPort",
    "ExitHandler",
    "GeneratorEventsPort",
    "OutputHandler",
    "RendererLaunchError",
    "RendererProcessPort",
    "SchedulerPort",
]
