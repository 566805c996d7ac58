"""Baseline calibration: resting engagement statistics and threshold seed."""

from __future__ import annotations

import math

import structlog

from neurogate.models import BaselineProfile

logger = structlog.get_logger(__name__)

DEFAULT_DURATION_SECONDS = 120.0
DEFAULT_STD_MULTIPLIER = 0.5


class CalibrationError(RuntimeError):
    """Raised when a baseline is finalised without any observed scores."""


class BaselineCalibrator:
    """Collect engagement scores over a wall-clock window.

    The window is delimited by the caller: :meth:`start` opens it and
    :meth:`window_elapsed` reports when the configured duration has passed.
    Sample arrival is irregular, so the window is measured in seconds, not
    in sample counts.

    :meth:`finalize` computes the population mean and standard deviation and
    seeds the decision threshold at ``mean + std_multiplier * stddev``.
    """

    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION_SECONDS,
        std_multiplier: float = DEFAULT_STD_MULTIPLIER,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be > 0, got {duration_seconds}")
        if not std_multiplier >= 0:
            raise ValueError(f"std_multiplier must be >= 0, got {std_multiplier}")
        self._duration = duration_seconds
        self._k = std_multiplier
        self._scores: list[float] = []
        self._started_at: float | None = None

    # ── Window ────────────────────────────────────────────────

    def start(self, now: float) -> None:
        """Open (or re-open) the calibration window at *now*."""
        self._scores.clear()
        self._started_at = now
        logger.info("calibration.started", duration_seconds=self._duration)

    def reset(self) -> None:
        self._scores.clear()
        self._started_at = None

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def duration(self) -> float:
        return self._duration

    def window_elapsed(self, now: float) -> bool:
        if self._started_at is None:
            return False
        return now - self._started_at >= self._duration

    def remaining(self, now: float) -> float:
        if self._started_at is None:
            return self._duration
        return max(0.0, self._duration - (now - self._started_at))

    # ── Observations ──────────────────────────────────────────

    def observe(self, score: float) -> None:
        if not math.isfinite(score):
            logger.warning("calibration.non_finite_score", score=score)
            return
        self._scores.append(score)

    @property
    def sample_count(self) -> int:
        return len(self._scores)

    def finalize(self) -> BaselineProfile:
        """Return the baseline for the observed scores.

        Raises :class:`CalibrationError` when nothing has been observed.
        """
        n = len(self._scores)
        if n == 0:
            raise CalibrationError("cannot finalize a baseline with zero observed scores")

        mean = sum(self._scores) / n
        variance = sum((s - mean) ** 2 for s in self._scores) / n
        stddev = math.sqrt(variance)
        profile = BaselineProfile(
            mean=mean,
            stddev=stddev,
            sample_count=n,
            threshold_seed=mean + self._k * stddev,
        )
        logger.info(
            "calibration.complete",
            mean=round(mean, 4),
            stddev=round(stddev, 4),
            samples=n,
            threshold=round(profile.threshold_seed, 4),
        )
        return profile
