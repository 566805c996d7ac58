"""Centralised session settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """All runtime configuration for a neurofeedback session.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in the flat
    ``NEUROGATE_`` namespace, e.g. ``NEUROGATE_COOLDOWN_SECONDS=1.5``.

    Invalid values raise :class:`pydantic.ValidationError` on construction so
    a bad configuration is rejected before a session starts.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEUROGATE_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Smoothing & engagement score ──────────────────────────
    smoothing_window: int = Field(10, ge=1)  # samples per band
    epsilon: float = Field(0.01, gt=0)  # floor for the low-band denominator
    theta_norm: float = Field(10.0, gt=0)
    theta_penalty_weight: float = Field(0.3, ge=0, le=1)
    high_weight: float = Field(1.0, gt=0)

    # ── Baseline calibration ──────────────────────────────────
    calibration_duration_seconds: float = Field(120.0, gt=0)
    threshold_std_multiplier: float = Field(0.5, ge=0)

    # ── Session phases (baseline runs for calibration_duration_seconds) ──
    training_duration_seconds: float = Field(900.0, gt=0)
    cooldown_duration_seconds: float = Field(180.0, gt=0)  # closing rest phase, not the reward cooldown
    stop_on_complete: bool = True

    # ── Adaptive threshold ────────────────────────────────────
    controller_period_seconds: float = Field(120.0, gt=0)
    target_success_rate: float = Field(0.5, gt=0, lt=1)
    success_rate_margin: float = Field(0.1, ge=0, lt=1)
    easier_multiplier: float = Field(0.9, gt=0, lt=1)
    harder_multiplier: float = Field(1.1, gt=1)
    threshold_min_ratio: float | None = Field(0.25, gt=0)
    threshold_max_ratio: float | None = Field(4.0, gt=0)

    # ── Reward ────────────────────────────────────────────────
    cooldown_seconds: float = Field(1.0, ge=0)
    reward_duration_seconds: float = Field(2.0, ge=0)

    # ── Orientation ───────────────────────────────────────────
    yaw_threshold: float = Field(15.0, ge=0, lt=90)
    pitch_tolerance: float = Field(30.0, gt=0, le=180)
    orientation_smoothing: float = Field(0.3, gt=0, le=1)

    # ── Recording ─────────────────────────────────────────────
    record_hz: float = Field(10.0, gt=0, le=1000)
    record_dir: Path = Path("sessions")
    record_flush_every: int = Field(100, ge=1)

    # ── Transport gap detection ───────────────────────────────
    telemetry_gap_seconds: float = Field(3.0, gt=0)
    orientation_gap_seconds: float = Field(3.0, gt=0)

    # ── Effects ───────────────────────────────────────────────
    webhook_url: str = ""

    # ── API server ────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    simulate: bool = False  # feed the server session from simulated sources

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def _check_consistency(self) -> Settings:
        if self.success_rate_margin >= min(self.target_success_rate, 1 - self.target_success_rate):
            raise ValueError(
                "success_rate_margin must leave a dead-band inside (0, 1) "
                f"around target_success_rate={self.target_success_rate}"
            )
        if (
            self.threshold_min_ratio is not None
            and self.threshold_max_ratio is not None
            and self.threshold_min_ratio > self.threshold_max_ratio
        ):
            raise ValueError("threshold_min_ratio must not exceed threshold_max_ratio")
        return self

    @property
    def record_interval_seconds(self) -> float:
        return 1.0 / self.record_hz


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
