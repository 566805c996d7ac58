"""Tests for the adaptive threshold controller."""

import pytest

from neurogate.engagement.threshold import AdaptiveThresholdController, Direction
from neurogate.models import BaselineProfile, ControllerState


def run_period(controller: AdaptiveThresholdController, successes: int, total: int):
    for i in range(total):
        controller.record(i < successes)
    return controller.step()


class TestAdaptiveThresholdController:
    def test_starts_uncalibrated(self):
        ctl = AdaptiveThresholdController()
        assert ctl.state is ControllerState.UNCALIBRATED
        assert ctl.threshold is None
        assert ctl.evaluate(10.0) is None
        assert ctl.observations == 0

    def test_seed(self, unit_profile):
        ctl = AdaptiveThresholdController()
        assert ctl.seed(unit_profile) == 1.0
        assert ctl.calibrated
        assert ctl.threshold == 1.0

    def test_seed_twice_raises(self, controller, unit_profile):
        with pytest.raises(RuntimeError):
            controller.seed(unit_profile)

    def test_low_success_rate_lowers_each_period(self, controller):
        expected = 1.0
        for _ in range(3):
            result = run_period(controller, successes=2, total=10)
            expected *= 0.9
            assert result.direction is Direction.LOWERED
            assert result.success_rate == pytest.approx(0.2)
            assert controller.threshold == pytest.approx(expected)
        assert controller.threshold == pytest.approx(0.729)

    def test_high_success_rate_raises(self, controller):
        result = run_period(controller, successes=8, total=10)
        assert result.direction is Direction.RAISED
        assert controller.threshold == pytest.approx(1.1)

    @pytest.mark.parametrize("successes", [45, 50, 55])
    def test_dead_band_keeps_threshold(self, controller, successes):
        result = run_period(controller, successes=successes, total=100)
        assert result.direction is Direction.UNCHANGED
        assert controller.threshold == 1.0

    def test_counters_reset_after_step(self, controller):
        run_period(controller, successes=2, total=10)
        assert controller.observations == 0
        assert controller.success_rate is None
        assert controller.steps == 1

    def test_step_without_observations_is_skipped(self, controller):
        result = controller.step()
        assert result.direction is Direction.SKIPPED
        assert controller.threshold == 1.0

    def test_step_while_uncalibrated_is_skipped(self):
        ctl = AdaptiveThresholdController()
        ctl.record(True)
        assert ctl.step().direction is Direction.SKIPPED
        assert ctl.threshold is None

    def test_evaluate_is_strictly_greater(self, controller):
        assert controller.evaluate(1.0) is False
        assert controller.evaluate(1.0001) is True
        assert controller.observations == 2
        assert controller.success_rate == pytest.approx(0.5)

    def test_clamped_relative_to_seed(self, unit_profile):
        ctl = AdaptiveThresholdController(min_ratio=0.8, max_ratio=1.2)
        ctl.seed(unit_profile)
        for _ in range(5):
            run_period(ctl, successes=0, total=4)
        assert ctl.threshold == pytest.approx(0.8)
        for _ in range(10):
            run_period(ctl, successes=4, total=4)
        assert ctl.threshold == pytest.approx(1.2)
        result = run_period(ctl, successes=4, total=4)
        assert result.direction is Direction.UNCHANGED

    def test_unclamped_by_default(self):
        ctl = AdaptiveThresholdController()
        ctl.seed(BaselineProfile(mean=2.0, stddev=0.0, sample_count=1, threshold_seed=2.0))
        for _ in range(20):
            run_period(ctl, successes=0, total=1)
        assert ctl.threshold == pytest.approx(2.0 * 0.9 ** 20)

    @pytest.mark.parametrize("kwargs", [
        {"target_success_rate": 0.0},
        {"target_success_rate": 1.0},
        {"margin": -0.1},
        {"easier_multiplier": 1.0},
        {"harder_multiplier": 1.0},
        {"min_ratio": 2.0, "max_ratio": 1.0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            AdaptiveThresholdController(**kwargs)
