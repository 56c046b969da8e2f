from __future__ import annotations
import logging
import tomllib
from datetime import datetime
from pathlib import Path
from typing import Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError
from .schedule import ScheduleEvent, prepare, scheduled_on

logger = logging.getLogger(__name__)

# (temperature F, humidity %)
EnvironmentReading = Tuple[float, float]


class FanPower:
    """Fan speed given as 0-100 %, kept as a 0.0-1.0 PWM duty cycle."""

    # 0-100 percentage to 0.0-1.0 duty cycle
    CONVERSION_FACTOR = 100.0

    __slots__ = ("_duty_cycle",)

    def __init__(self, percent: float) -> None:
        percent = float(percent)
        # NaN fails the range check as well
        if not 0.0 <= percent <= 100.0:
            raise ConfigurationError(f"Fan power must be between 0 and 100 %, got {percent}")
        self._duty_cycle = percent / self.CONVERSION_FACTOR

    def as_duty_cycle(self) -> float:
        return self._duty_cycle

    @property
    def percent(self) -> float:
        return self._duty_cycle * self.CONVERSION_FACTOR

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FanPower):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def _key(self) -> float:
        # eq and hash share this rounding
        return round(self._duty_cycle, 9)

    def __repr__(self) -> str:
        return f"FanPower({self.percent:g}%)"


class Thresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_temp: float       # F
    min_humidity: float   # %
    max_temp: float       # F
    max_humidity: float   # %

    @model_validator(mode="after")
    def _check_bounds(self) -> "Thresholds":
        if self.min_temp > self.max_temp:
            raise ValueError(f"min_temp {self.min_temp} is above max_temp {self.max_temp}")
        if self.min_humidity > self.max_humidity:
            raise ValueError(
                f"min_humidity {self.min_humidity} is above max_humidity {self.max_humidity}"
            )
        return self


class FanConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    power: FanPower
    schedule: list[ScheduleEvent]

    @field_validator("power", mode="before")
    @classmethod
    def _parse_power(cls, v):
        if isinstance(v, FanPower):
            return v
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("fan power must be a number between 0 and 100")
        return FanPower(v)

    @field_serializer("power")
    def _dump_power(self, power: FanPower) -> float:
        return power.percent


class LightConfig(BaseModel):
    schedule: list[ScheduleEvent]


class ControlConfig(BaseModel):
    """Light/fan schedules plus thresholds; decides what each actuator should do.

    Every decision has the same shape:

        (scheduled on OR environment wants on) AND NOT environment forbids on

    The forbidding rule is a safety clamp and always wins. Temperatures are in
    Fahrenheit, humidity in percent, times are local.
    """

    fan: FanConfig
    light: LightConfig
    thresholds: Thresholds

    # --- Loading ---

    @classmethod
    def from_toml(cls, text: str) -> "ControlConfig":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed configuration: {e}") from e
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        config.setup()
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ControlConfig":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
        config = cls.from_toml(text)
        logger.info("Loaded configuration from %s", path)
        return config

    def setup(self) -> None:
        """Sort both schedules and check their On/Off pairing."""
        self.light.schedule = prepare(self.light.schedule, "light")
        self.fan.schedule = prepare(self.fan.schedule, "fan")

    # --- Decisions ---

    def light_on(self, when: datetime, environment: EnvironmentReading) -> bool:
        temp, humidity = environment
        t = self.thresholds

        on_schedule = scheduled_on(self.light.schedule, when)
        # Too humid: run the light to burn off moisture. Too cold: run it for heat.
        on_environment = humidity > t.max_humidity or temp < t.min_temp
        # Too hot: never run the light
        off_environment = temp > t.max_temp

        decision = (on_schedule or on_environment) and not off_environment
        logger.debug(
            "light: schedule=%s env_on=%s env_off=%s -> %s",
            on_schedule, on_environment, off_environment, decision,
        )
        return decision

    def light_off(self, when: datetime, environment: EnvironmentReading) -> bool:
        return not self.light_on(when, environment)

    def fan_on(self, when: datetime, environment: EnvironmentReading) -> bool:
        temp, humidity = environment
        t = self.thresholds

        on_schedule = scheduled_on(self.fan.schedule, when)
        # Too humid or too hot: circulate
        on_environment = humidity > t.max_humidity or temp > t.max_temp
        # Too dry or too cold: don't make it worse
        off_environment = humidity < t.min_humidity or temp < t.min_temp

        decision = (on_schedule or on_environment) and not off_environment
        logger.debug(
            "fan: schedule=%s env_on=%s env_off=%s -> %s",
            on_schedule, on_environment, off_environment, decision,
        )
        return decision

    def fan_off(self, when: datetime, environment: EnvironmentReading) -> bool:
        return not self.fan_on(when, environment)

    def fan_power(self) -> FanPower:
        return self.fan.power
