from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .config import ControlConfig


@dataclass(frozen=True)
class Sample:
    temperature: float  # Celsius, as read
    humidity: float     # %RH

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.temperature)
            and math.isfinite(self.humidity)
            and 0.0 <= self.humidity <= 100.0
        )


# --- Control bus messages ---

@dataclass(frozen=True)
class Setup:
    config: ControlConfig


@dataclass(frozen=True)
class Time:
    at: datetime  # local time


@dataclass(frozen=True)
class Environment:
    temperature: float  # Fahrenheit
    humidity: float


@dataclass(frozen=True)
class Exit:
    pass


Message = Union[Setup, Time, Environment, Exit]
