"""Engagement sub-package: smoothing, scoring, calibration and the adaptive threshold."""

from neurogate.engagement.buffer import SampleBuffer
from neurogate.engagement.calibration import BaselineCalibrator, CalibrationError
from neurogate.engagement.scorer import EngagementScorer
from neurogate.engagement.threshold import AdaptiveThresholdController, ThresholdAdjustment

__all__ = [
    "AdaptiveThresholdController",
    "BaselineCalibrator",
    "CalibrationError",
    "EngagementScorer",
    "SampleBuffer",
    "ThresholdAdjustment",
]
