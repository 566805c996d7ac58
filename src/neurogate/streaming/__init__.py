"""Streaming sub-package: the sample pipeline and transport-gap watchdog."""

from neurogate.streaming.pipeline import StreamPipeline
from neurogate.streaming.watchdog import SignalWatchdog

__all__ = ["SignalWatchdog", "StreamPipeline"]
