"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from neurogate.config import Settings
from neurogate.engagement.calibration import BaselineCalibrator
from neurogate.engagement.threshold import AdaptiveThresholdController
from neurogate.models import BaselineProfile
from neurogate.session import NeurofeedbackSession


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, record_dir=tmp_path)


@pytest.fixture
def fast_settings(tmp_path) -> Settings:
    """One-sample smoothing and a short calibration window."""
    return Settings(
        _env_file=None,
        record_dir=tmp_path,
        smoothing_window=1,
        calibration_duration_seconds=10.0,
    )


@pytest.fixture
def session(fast_settings: Settings, clock: FakeClock) -> NeurofeedbackSession:
    return NeurofeedbackSession(fast_settings, clock=clock, record=False)


@pytest.fixture
def unit_profile() -> BaselineProfile:
    return BaselineProfile(mean=1.0, stddev=0.0, sample_count=5, threshold_seed=1.0)


@pytest.fixture
def controller(unit_profile: BaselineProfile) -> AdaptiveThresholdController:
    ctl = AdaptiveThresholdController()
    ctl.seed(unit_profile)
    return ctl


@pytest.fixture
def calibrator() -> BaselineCalibrator:
    return BaselineCalibrator(duration_seconds=120.0)


