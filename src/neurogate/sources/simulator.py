"""Simulated sources for running a session without hardware.

:class:`SimulatedBandSource` produces low/mid/high band powers as slow
sinusoids plus noise, in the ranges a consumer EEG headband reports.
:class:`SimulatedHeadSource` sweeps the head yaw back and forth through the
target zone with a little jitter on both axes.
"""

from __future__ import annotations

import asyncio
import math
import random
import time
from enum import Enum
from typing import AsyncIterator, Callable

from neurogate.models import Band, OrientationSample, TelemetrySample
from neurogate.sources.base import PushSource


class EngagementProfile(str, Enum):
    BASELINE = "baseline"
    HIGH = "high"
    LOW = "low"


# (low, mid, high) centre powers per profile
_PROFILE_CENTRES: dict[EngagementProfile, tuple[float, float, float]] = {
    EngagementProfile.BASELINE: (0.5, 0.3, 0.5),
    EngagementProfile.HIGH: (0.3, 0.2, 0.8),
    EngagementProfile.LOW: (0.8, 0.7, 0.3),
}


class SimulatedBandSource(PushSource):
    """Emit one sample per band every ``1 / rate_hz`` seconds.

    Parameters
    ----------
    rate_hz : float
        Nominal sample rate per band.
    profile : EngagementProfile
        Centre powers; switch at runtime with :meth:`set_profile`.
    variation : float
        Amplitude of the sinusoidal drift.
    duration : float | None
        Stop after this many seconds (``None`` runs until cancelled).
    seed : int | None
        Seed for the noise generator.
    """

    name = "simulated_bands"

    def __init__(
        self,
        rate_hz: float = 10.0,
        profile: EngagementProfile = EngagementProfile.BASELINE,
        variation: float = 0.2,
        duration: float | None = None,
        seed: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_hz <= 0:
            raise ValueError(f"rate_hz must be > 0, got {rate_hz}")
        self._period = 1.0 / rate_hz
        self._profile = profile
        self._variation = variation
        self._duration = duration
        self._rng = random.Random(seed)
        self._clock = clock
        self._phase = self._rng.uniform(0.0, 100.0)
        self._closed = False

    def set_profile(self, profile: EngagementProfile) -> None:
        self._profile = profile

    def sample_at(self, t: float) -> list[TelemetrySample]:
        """Band powers for elapsed time *t*, stamped with the current clock."""
        low_c, mid_c, high_c = _PROFILE_CENTRES[self._profile]
        x = t * 0.5 + self._phase
        v = self._variation
        powers = {
            Band.LOW: low_c + math.sin(x * 1.2) * v + self._rng.uniform(-0.05, 0.05),
            Band.MID: mid_c + math.sin(x * 0.8) * v * 0.5 + self._rng.uniform(-0.05, 0.05),
            Band.HIGH: high_c + math.sin(x * 2.1) * v * 0.75 + self._rng.uniform(-0.08, 0.08),
        }
        now = self._clock()
        return [
            TelemetrySample(band=band, power=max(0.0, p), timestamp=now)
            for band, p in powers.items()
        ]

    async def stream(self) -> AsyncIterator[TelemetrySample]:
        started = self._clock()
        while not self._closed:
            t = self._clock() - started
            if self._duration is not None and t >= self._duration:
                return
            for sample in self.sample_at(t):
                yield sample
            await asyncio.sleep(self._period)

    async def close(self) -> None:
        self._closed = True


class SimulatedHeadSource(PushSource):
    """Sweep yaw sinusoidally between ``-amplitude`` and ``+amplitude`` degrees."""

    name = "simulated_head"

    def __init__(
        self,
        rate_hz: float = 30.0,
        amplitude: float = 40.0,
        sweep_seconds: float = 20.0,
        jitter: float = 2.0,
        duration: float | None = None,
        seed: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_hz <= 0:
            raise ValueError(f"rate_hz must be > 0, got {rate_hz}")
        self._period = 1.0 / rate_hz
        self._amplitude = amplitude
        self._sweep = sweep_seconds
        self._jitter = jitter
        self._duration = duration
        self._rng = random.Random(seed)
        self._clock = clock
        self._closed = False

    def sample_at(self, t: float) -> OrientationSample:
        yaw = self._amplitude * math.sin(2 * math.pi * t / self._sweep)
        return OrientationSample(
            yaw=yaw + self._rng.gauss(0.0, self._jitter),
            pitch=self._rng.gauss(0.0, self._jitter * 2),
            timestamp=self._clock(),
        )

    async def stream(self) -> AsyncIterator[OrientationSample]:
        started = self._clock()
        while not self._closed:
            t = self._clock() - started
            if self._duration is not None and t >= self._duration:
                return
            yield self.sample_at(t)
            await asyncio.sleep(self._period)

    async def close(self) -> None:
        self._closed = True
