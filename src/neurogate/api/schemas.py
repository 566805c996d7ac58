"""Request / response models for the session API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from neurogate.models import Band


class TelemetryRequest(BaseModel):
    band: Band
    power: float = Field(ge=0, allow_inf_nan=False)
    timestamp: float | None = None  # sender's monotonic clock; defaults to arrival


class OrientationRequest(BaseModel):
    yaw: float = Field(ge=-360, le=360)
    pitch: float = Field(ge=-360, le=360)
    timestamp: float | None = None


class QueuedResponse(BaseModel):
    count: int = 1
    queued: bool = True


class RewardResponse(BaseModel):
    triggered: bool
    sequence_number: int | None = None
    cooldown_remaining: float = 0.0
