from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class NetworkUpdate(BaseModel):
    """Status datagram broadcast after every environment update."""

    temperature: float  # F
    humidity: float = Field(ge=0, le=100)
    timestamp: Optional[datetime] = None


class ActuatorStatus(BaseModel):
    name: str
    state: str
    is_on: Optional[bool]
    last_time: Optional[datetime]
    last_temperature: Optional[float]
    last_humidity: Optional[float]
    dropped_messages: int


class LiveStatus(BaseModel):
    app: str
    now_local: datetime
    running: bool
    cycles: int
    buffered_readings: int
    temperature: Optional[float]
    humidity: Optional[float]
    last_time: Optional[datetime]
    actuators: list[ActuatorStatus]


class SimManualRequest(BaseModel):
    temperature: float  # C
    humidity: float = Field(ge=0, le=100)


class SimPatternRequest(BaseModel):
    type: Literal["sine", "step", "random"]
    temp_baseline: float = 22.0
    temp_amplitude: float = Field(default=4.0, ge=0)
    humidity_baseline: float = Field(default=60.0, ge=0, le=100)
    humidity_amplitude: float = Field(default=15.0, ge=0)
    period_s: float = Field(default=86_400.0, gt=0)
    noise: float = Field(default=0.3, ge=0)
    step_period_s: float = Field(default=600.0, gt=0)
