"""Engagement scoring from smoothed band powers.

The score rewards a high alertness band relative to the relaxation band and
penalises a strong drowsiness band::

    score = high_weight * (high / max(low, eps))
            * (1 - clamp(mid / theta_norm, 0, 1) * theta_penalty_weight)

Until every band has delivered at least one sample the score is undefined and
:meth:`EngagementScorer.current_score` returns ``None``.  Downstream consumers
must treat ``None`` as "no update".
"""

from __future__ import annotations

import math

import structlog

from neurogate.engagement.buffer import SampleBuffer
from neurogate.models import Band

logger = structlog.get_logger(__name__)

DEFAULT_EPSILON = 0.01
DEFAULT_THETA_NORM = 10.0
DEFAULT_THETA_PENALTY = 0.3

# Bands whose update triggers a fresh score for downstream consumers
SCORING_BANDS = frozenset({Band.MID, Band.HIGH})


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


class EngagementScorer:
    """Per-band smoothing plus the composite engagement formula.

    Parameters
    ----------
    window : int
        Moving-average window (samples) per band.
    epsilon : float
        Floor applied to the low-band mean before dividing.
    theta_norm : float
        Normalisation constant for the mid band.
    theta_penalty_weight : float
        Fraction of the score removed at full mid-band power, in ``[0, 1]``.
    high_weight : float
        Multiplier on the high/low ratio.
    """

    def __init__(
        self,
        window: int = 10,
        epsilon: float = DEFAULT_EPSILON,
        theta_norm: float = DEFAULT_THETA_NORM,
        theta_penalty_weight: float = DEFAULT_THETA_PENALTY,
        high_weight: float = 1.0,
    ) -> None:
        if epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {epsilon}")
        if theta_norm <= 0:
            raise ValueError(f"theta_norm must be > 0, got {theta_norm}")
        if not 0.0 <= theta_penalty_weight <= 1.0:
            raise ValueError(f"theta_penalty_weight must be in [0, 1], got {theta_penalty_weight}")
        if high_weight <= 0:
            raise ValueError(f"high_weight must be > 0, got {high_weight}")

        self._buffers = {band: SampleBuffer(window) for band in Band}
        self._epsilon = epsilon
        self._theta_norm = theta_norm
        self._theta_penalty = theta_penalty_weight
        self._high_weight = high_weight

    # ── Updates ───────────────────────────────────────────────

    def update(self, band: Band, power: float) -> float:
        """Add one sample to *band* and return that band's smoothed value."""
        if not math.isfinite(power) or power < 0:
            raise ValueError(f"band power must be finite and >= 0, got {power}")
        return self._buffers[Band(band)].push(power)

    def reset(self) -> None:
        for buf in self._buffers.values():
            buf.clear()

    # ── Queries ───────────────────────────────────────────────

    def smoothed(self, band: Band) -> float:
        """Moving average for *band* (``0.0`` before its first sample)."""
        return self._buffers[Band(band)].mean

    def sample_count(self, band: Band) -> int:
        return len(self._buffers[Band(band)])

    @property
    def ready(self) -> bool:
        """``True`` once every band holds at least one sample."""
        return all(len(buf) > 0 for buf in self._buffers.values())

    def current_score(self) -> float | None:
        if not self.ready:
            return None

        low = max(self.smoothed(Band.LOW), self._epsilon)
        mid = self.smoothed(Band.MID)
        high = self.smoothed(Band.HIGH)

        ratio = (high / low) * self._high_weight
        theta_factor = 1.0 - _clamp01(mid / self._theta_norm) * self._theta_penalty
        score = ratio * theta_factor
        if not math.isfinite(score):
            logger.warning("engagement.score_overflow", low=low, mid=mid, high=high)
            return None
        return score
