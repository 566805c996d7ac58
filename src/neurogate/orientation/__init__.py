"""Orientation sub-package: head pose smoothing and zone classification."""

from neurogate.orientation.classifier import OrientationClassifier, normalize_angle

__all__ = ["OrientationClassifier", "normalize_angle"]
