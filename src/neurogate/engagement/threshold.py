"""Adaptive decision threshold: a slow bang-bang controller with a dead-band.

The controller owns the decision threshold.  It starts *uncalibrated* and is
seeded exactly once from a :class:`BaselineProfile`.  While calibrated, every
engagement score is recorded as a success (above threshold) or not, and a
periodic :meth:`AdaptiveThresholdController.step` compares the realised
success rate with the target:

* rate below ``target - margin`` → threshold × ``easier_multiplier`` (0.9)
* rate above ``target + margin`` → threshold × ``harder_multiplier`` (1.1)
* otherwise unchanged

Counters reset after every step.

The threshold may optionally be clamped to ``[min_ratio, max_ratio]`` times
the seeded value so it cannot drift without bound over a long session.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum

import structlog

from neurogate.models import BaselineProfile, ControllerState

logger = structlog.get_logger(__name__)

DEFAULT_TARGET = 0.5
DEFAULT_MARGIN = 0.1
DEFAULT_EASIER = 0.9
DEFAULT_HARDER = 1.1


class Direction(str, Enum):
    LOWERED = "lowered"
    RAISED = "raised"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"  # no observations or not yet calibrated


@dataclass(frozen=True, slots=True)
class ThresholdAdjustment:
    """Outcome of one control step."""

    direction: Direction
    old_threshold: float | None
    new_threshold: float | None
    success_rate: float | None
    observations: int


class AdaptiveThresholdController:
    """Owner of the decision threshold.

    All reads and writes go through an internal lock, so the periodic step
    and per-score decisions never interleave even when they run on
    different threads.
    """

    def __init__(
        self,
        target_success_rate: float = DEFAULT_TARGET,
        margin: float = DEFAULT_MARGIN,
        easier_multiplier: float = DEFAULT_EASIER,
        harder_multiplier: float = DEFAULT_HARDER,
        min_ratio: float | None = None,
        max_ratio: float | None = None,
    ) -> None:
        if not 0.0 < target_success_rate < 1.0:
            raise ValueError(f"target_success_rate must be in (0, 1), got {target_success_rate}")
        if margin < 0:
            raise ValueError(f"margin must be >= 0, got {margin}")
        if not 0.0 < easier_multiplier < 1.0:
            raise ValueError(f"easier_multiplier must be in (0, 1), got {easier_multiplier}")
        if harder_multiplier <= 1.0:
            raise ValueError(f"harder_multiplier must be > 1, got {harder_multiplier}")
        if min_ratio is not None and max_ratio is not None and min_ratio > max_ratio:
            raise ValueError("min_ratio must not exceed max_ratio")

        self._target = target_success_rate
        self._margin = margin
        self._easier = easier_multiplier
        self._harder = harder_multiplier
        self._min_ratio = min_ratio
        self._max_ratio = max_ratio

        self._lock = threading.Lock()
        self._state = ControllerState.UNCALIBRATED
        self._threshold: float | None = None
        self._seed: float | None = None
        self._successes = 0
        self._total = 0
        self._steps = 0

    # ── Calibration ───────────────────────────────────────────

    def seed(self, profile: BaselineProfile) -> float:
        """Transition to *calibrated* using the baseline's threshold seed.

        Raises :class:`RuntimeError` if already calibrated; the transition
        happens once per session.
        """
        with self._lock:
            if self._state is ControllerState.CALIBRATED:
                raise RuntimeError("threshold controller is already calibrated")
            self._seed = profile.threshold_seed
            self._threshold = profile.threshold_seed
            self._state = ControllerState.CALIBRATED
            self._successes = 0
            self._total = 0
        logger.info("threshold.seeded", threshold=round(profile.threshold_seed, 4))
        return profile.threshold_seed

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def calibrated(self) -> bool:
        return self._state is ControllerState.CALIBRATED

    @property
    def threshold(self) -> float | None:
        with self._lock:
            return self._threshold

    # ── Decisions ─────────────────────────────────────────────

    def evaluate(self, score: float) -> bool | None:
        """Compare *score* with the threshold and count the observation.

        Returns ``None`` while uncalibrated (nothing is counted).
        """
        with self._lock:
            if self._threshold is None:
                return None
            engaged = score > self._threshold
            self._total += 1
            if engaged:
                self._successes += 1
            return engaged

    def record(self, engaged: bool) -> None:
        """Count an externally decided observation."""
        with self._lock:
            if self._threshold is None:
                return
            self._total += 1
            if engaged:
                self._successes += 1

    @property
    def success_rate(self) -> float | None:
        with self._lock:
            return self._successes / self._total if self._total else None

    @property
    def observations(self) -> int:
        return self._total

    @property
    def steps(self) -> int:
        return self._steps

    # ── Control step ──────────────────────────────────────────

    def step(self) -> ThresholdAdjustment:
        """Run one control period and reset the counters."""
        with self._lock:
            old = self._threshold
            total = self._total
            if old is None or total == 0:
                result = ThresholdAdjustment(Direction.SKIPPED, old, old, None, total)
            else:
                rate = self._successes / total
                if rate < self._target - self._margin:
                    new = self._clamp(old * self._easier)
                elif rate > self._target + self._margin:
                    new = self._clamp(old * self._harder)
                else:
                    new = old

                if new < old:
                    direction = Direction.LOWERED
                elif new > old:
                    direction = Direction.RAISED
                else:
                    direction = Direction.UNCHANGED
                self._threshold = new
                result = ThresholdAdjustment(direction, old, new, rate, total)

            self._successes = 0
            self._total = 0
            self._steps += 1

        if result.direction is Direction.SKIPPED:
            logger.debug("threshold.step_skipped", observations=total)
        else:
            logger.info(
                "threshold.adjusted",
                direction=result.direction.value,
                old=round(result.old_threshold, 4),
                new=round(result.new_threshold, 4),
                success_rate=round(result.success_rate, 3),
                observations=total,
            )
        return result

    def _clamp(self, value: float) -> float:
        if self._seed is None:
            return value
        if self._min_ratio is not None:
            value = max(value, self._seed * self._min_ratio)
        if self._max_ratio is not None:
            value = min(value, self._seed * self._max_ratio)
        return value
