"""
Generator component port definitions.
"""

from src.core.ports.events import GeneratorEventsPort
from src.core.ports.renderer import RendererProcessPort
from src.core.ports.storage import ArtifactStorePort
from src.core.ports.time import ClockPort, SchedulerPort

__all__ = [
    "ArtifactStorePort",
    "ClockPort",
    "GeneratorEventsPort",
    "RendererProcessPort",
    "SchedulerPort",
]
