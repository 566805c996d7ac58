"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from neurogate.config import Settings


def test_defaults(tmp_path):
    s = Settings(_env_file=None, record_dir=tmp_path)
    assert s.smoothing_window == 10
    assert s.calibration_duration_seconds == 120.0
    assert s.threshold_std_multiplier == 0.5
    assert s.controller_period_seconds == 120.0
    assert s.cooldown_seconds == 1.0
    assert s.training_duration_seconds == 900.0
    assert s.cooldown_duration_seconds == 180.0
    assert s.stop_on_complete is True
    assert s.yaw_threshold == 15.0
    assert s.pitch_tolerance == 30.0
    assert s.record_interval_seconds == pytest.approx(0.1)


def test_environment_override(monkeypatch):
    monkeypatch.setenv("NEUROGATE_COOLDOWN_SECONDS", "1.5")
    monkeypatch.setenv("NEUROGATE_SMOOTHING_WINDOW", "4")
    s = Settings(_env_file=None)
    assert s.cooldown_seconds == 1.5
    assert s.smoothing_window == 4


def test_clamp_can_be_disabled():
    s = Settings(_env_file=None, threshold_min_ratio=None, threshold_max_ratio=None)
    assert s.threshold_min_ratio is None


@pytest.mark.parametrize("kwargs", [
    {"smoothing_window": 0},
    {"epsilon": 0.0},
    {"cooldown_seconds": -1.0},
    {"target_success_rate": 1.0},
    {"success_rate_margin": 0.5},
    {"harder_multiplier": 0.9},
    {"threshold_min_ratio": 2.0, "threshold_max_ratio": 1.0},
    {"yaw_threshold": 95.0},
    {"record_hz": 0.0},
    {"threshold_std_multiplier": -0.5},
    {"training_duration_seconds": 0.0},
    {"cooldown_duration_seconds": -1.0},
])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **kwargs)
