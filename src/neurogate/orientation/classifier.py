"""Head-orientation smoothing and target-zone classification."""

from __future__ import annotations

import structlog

from neurogate.models import OrientationState

logger = structlog.get_logger(__name__)

DEFAULT_YAW_THRESHOLD = 15.0  # degrees; positive yaw = turned towards the target side
DEFAULT_PITCH_TOLERANCE = 30.0
DEFAULT_SMOOTHING = 0.3


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into ``(-180, 180]``."""
    angle = angle % 360.0
    if angle > 180.0:
        angle -= 360.0
    return angle


class OrientationClassifier:
    """Exponentially smooth yaw/pitch and classify against the target zone.

    ``in_zone`` holds when the smoothed yaw exceeds ``yaw_threshold`` and
    the absolute smoothed pitch stays below ``pitch_tolerance``.  A higher
    ``alpha`` tracks head movement faster at the cost of more jitter.

    The first sample seeds the smoothed state directly.
    """

    def __init__(
        self,
        yaw_threshold: float = DEFAULT_YAW_THRESHOLD,
        pitch_tolerance: float = DEFAULT_PITCH_TOLERANCE,
        alpha: float = DEFAULT_SMOOTHING,
    ) -> None:
        if not 0.0 <= yaw_threshold < 90.0:
            raise ValueError(f"yaw_threshold must be in [0, 90), got {yaw_threshold}")
        if pitch_tolerance <= 0:
            raise ValueError(f"pitch_tolerance must be > 0, got {pitch_tolerance}")
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")

        self._yaw_threshold = yaw_threshold
        self._pitch_tolerance = pitch_tolerance
        self._alpha = alpha

        self._yaw: float | None = None
        self._pitch: float | None = None
        self._state = OrientationState(yaw=0.0, pitch=0.0, in_zone=False)
        self.entered_zone = False
        self.left_zone = False

    @property
    def state(self) -> OrientationState:
        return self._state

    @property
    def has_data(self) -> bool:
        return self._yaw is not None

    def update(self, raw_yaw: float, raw_pitch: float) -> OrientationState:
        raw_yaw = normalize_angle(raw_yaw)
        raw_pitch = normalize_angle(raw_pitch)

        if self._yaw is None or self._pitch is None:
            self._yaw, self._pitch = raw_yaw, raw_pitch
        else:
            self._yaw = self._yaw * (1 - self._alpha) + raw_yaw * self._alpha
            self._pitch = self._pitch * (1 - self._alpha) + raw_pitch * self._alpha

        was_in_zone = self._state.in_zone
        in_zone = self.classify(self._yaw, self._pitch)
        self._state = OrientationState(
            yaw=self._yaw,
            pitch=self._pitch,
            in_zone=in_zone,
            intensity=self.intensity(self._yaw),
        )

        self.entered_zone = in_zone and not was_in_zone
        self.left_zone = was_in_zone and not in_zone
        if self.entered_zone:
            logger.debug("orientation.entered_zone", yaw=round(self._yaw, 2))
        elif self.left_zone:
            logger.debug("orientation.left_zone", yaw=round(self._yaw, 2))
        return self._state

    def classify(self, yaw: float, pitch: float) -> bool:
        return yaw > self._yaw_threshold and abs(pitch) < self._pitch_tolerance

    def intensity(self, yaw: float) -> float:
        """How far into the zone *yaw* is: 0 at the threshold, 1 at 90°."""
        span = 90.0 - self._yaw_threshold
        return max(0.0, min(1.0, (yaw - self._yaw_threshold) / span))

    def reset(self) -> None:
        self._yaw = None
        self._pitch = None
        self._state = OrientationState(yaw=0.0, pitch=0.0, in_zone=False)
        self.entered_zone = False
        self.left_zone = False
