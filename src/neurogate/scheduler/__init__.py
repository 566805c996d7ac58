"""Scheduling primitives for timed session phases."""

from neurogate.scheduler.periodic import PeriodicTask
from neurogate.scheduler.phases import PhaseRunner

__all__ = ["PeriodicTask", "PhaseRunner"]
