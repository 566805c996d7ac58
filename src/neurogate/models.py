"""Shared Pydantic models used across the session core."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ── Enums ─────────────────────────────────────────────────────

class Band(str, Enum):
    """Band-power channels consumed by the engagement scorer.

    ``low`` carries the relaxation band (alpha), ``mid`` the drowsiness band
    (theta) and ``high`` the alertness band (beta).
    """
    LOW = "low"
    MID = "mid"
    HIGH = "high"


class ControllerState(str, Enum):
    UNCALIBRATED = "uncalibrated"
    CALIBRATED = "calibrated"


class ArbiterState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class SessionPhase(str, Enum):
    """Timed stage of a training session, in the order they run."""
    NOT_STARTED = "not_started"
    BASELINE = "baseline"
    TRAINING = "training"
    COOLDOWN = "cooldown"
    COMPLETED = "completed"


class SignalStatus(str, Enum):
    """Transport health of an input stream, reported next to (not inside) the score."""
    WAITING = "waiting"
    OK = "ok"
    STALLED = "stalled"


# ── Inputs ────────────────────────────────────────────────────

class TelemetrySample(BaseModel):
    """One band-power value pushed by the sensor transport."""
    model_config = ConfigDict(frozen=True)

    band: Band
    power: float = Field(ge=0, allow_inf_nan=False)
    timestamp: float  # monotonic seconds


class OrientationSample(BaseModel):
    """One head orientation reading, in degrees."""
    model_config = ConfigDict(frozen=True)

    yaw: float
    pitch: float
    timestamp: float = 0.0


# ── Derived state ─────────────────────────────────────────────

class BaselineProfile(BaseModel):
    """Resting engagement statistics gathered during calibration."""
    model_config = ConfigDict(frozen=True)

    mean: float
    stddev: float = Field(ge=0)
    sample_count: int = Field(ge=1)
    threshold_seed: float = Field(ge=0, allow_inf_nan=False)


class OrientationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    yaw: float
    pitch: float
    in_zone: bool
    intensity: float = Field(0.0, ge=0, le=1)


class RewardEvent(BaseModel):
    """A single reward emission; consumed by the effect layer and the recorder."""
    model_config = ConfigDict(frozen=True)

    sequence_number: int = Field(ge=1)
    timestamp: float


class SessionRecord(BaseModel):
    """One recorder row.  ``None`` marks a value that is not yet defined."""
    model_config = ConfigDict(frozen=True)

    timestamp_ms: int
    smoothed_low: float
    smoothed_mid: float
    smoothed_high: float
    engagement_score: float | None = None
    decision_threshold: float | None = None
    yaw: float = 0.0
    pitch: float = 0.0
    in_zone: bool = False
    reward_triggered: bool = False
    signal_status: SignalStatus = SignalStatus.WAITING
    event: str = ""
