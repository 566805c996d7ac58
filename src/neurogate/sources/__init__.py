"""Sample sources: the push side of the pipeline."""

from neurogate.sources.base import PushSource, pump
from neurogate.sources.simulator import (
    EngagementProfile,
    SimulatedBandSource,
    SimulatedHeadSource,
)

__all__ = [
    "EngagementProfile",
    "PushSource",
    "SimulatedBandSource",
    "SimulatedHeadSource",
    "pump",
]
