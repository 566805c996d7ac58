"""Tests for the simulated sample sources and the pump helper."""

import pytest

from neurogate.models import Band, OrientationSample, TelemetrySample
from neurogate.sources import (
    EngagementProfile,
    SimulatedBandSource,
    SimulatedHeadSource,
    pump,
)
from neurogate.streaming.pipeline import StreamPipeline


class TestSimulatedBandSource:
    def test_one_sample_per_band(self):
        source = SimulatedBandSource(seed=7)
        samples = source.sample_at(0.0)
        assert [s.band for s in samples] == [Band.LOW, Band.MID, Band.HIGH]
        assert all(s.power >= 0 for s in samples)

    def test_seeded_output_is_reproducible(self):
        a = SimulatedBandSource(seed=3, clock=lambda: 0.0).sample_at(1.0)
        b = SimulatedBandSource(seed=3, clock=lambda: 0.0).sample_at(1.0)
        assert a == b

    def test_profile_shifts_high_band(self):
        source = SimulatedBandSource(seed=1, variation=0.0)
        source.set_profile(EngagementProfile.HIGH)
        high = {s.band: s.power for s in source.sample_at(0.0)}
        source.set_profile(EngagementProfile.LOW)
        low = {s.band: s.power for s in source.sample_at(0.0)}
        assert high[Band.HIGH] > low[Band.HIGH]

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            SimulatedBandSource(rate_hz=0)


class TestSimulatedHeadSource:
    def test_yaw_within_amplitude(self):
        source = SimulatedHeadSource(amplitude=40.0, jitter=0.0, seed=2)
        yaws = [source.sample_at(t / 10).yaw for t in range(200)]
        assert max(yaws) <= 40.0
        assert min(yaws) >= -40.0
        assert max(yaws) > 15.0


@pytest.mark.asyncio
async def test_pump_forwards_until_exhausted():
    pipeline = StreamPipeline()
    count = await pump(SimulatedBandSource(rate_hz=200, duration=0.05, seed=1), pipeline)
    assert count > 0
    assert count % 3 == 0
    assert pipeline.pending == count


@pytest.mark.asyncio
async def test_head_source_stream_yields_orientation():
    source = SimulatedHeadSource(rate_hz=200, duration=0.03, seed=1)
    samples = [s async for s in source.stream()]
    assert samples
    assert all(isinstance(s, OrientationSample) for s in samples)
    assert not any(isinstance(s, TelemetrySample) for s in samples)
