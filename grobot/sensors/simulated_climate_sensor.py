from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass
from threading import Lock

from .base import Sensor
from ..domain.models import Sample


@dataclass
class PatternConfig:
    type: str = "sine"          # sine|step|random
    temp_baseline: float = 22.0  # C
    temp_amplitude: float = 4.0
    humidity_baseline: float = 60.0
    humidity_amplitude: float = 15.0
    period_s: float = 86_400.0  # one simulated day
    noise: float = 0.3

    step_period_s: float = 600.0


class SimulatedClimateSensor(Sensor):
    """Stand-in for the DHT22 when running off the Pi.

    Produces either a fixed manual reading or a pattern, with optional noise,
    injected read failures and occasional garbage values like a real DHT22.
    """

    def __init__(
        self,
        sensor_id: str = "climate_sim",
        failure_rate: float = 0.0,
        glitch_rate: float = 0.0,
    ):
        self._sensor_id = sensor_id
        self._lock = Lock()
        self._enabled = True
        self._mode = "manual"   # manual|pattern
        self._manual = Sample(temperature=22.0, humidity=60.0)
        self._pattern = PatternConfig()
        self._failure_rate = failure_rate
        self._glitch_rate = glitch_rate

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def set_manual(self, temperature: float, humidity: float) -> None:
        with self._lock:
            self._mode = "manual"
            self._manual = Sample(temperature=float(temperature), humidity=float(humidity))

    def set_pattern(self, cfg: PatternConfig) -> None:
        with self._lock:
            self._mode = "pattern"
            self._pattern = cfg

    def status(self) -> dict:
        with self._lock:
            return {
                "enabled": self._enabled,
                "mode": self._mode,
                "manual": {
                    "temperature": self._manual.temperature,
                    "humidity": self._manual.humidity,
                },
                "pattern": self._pattern.__dict__,
            }

    def read(self) -> Sample:
        with self._lock:
            if not self._enabled:
                raise RuntimeError("Simulated sensor disabled")

            if self._failure_rate > 0.0 and random.random() < self._failure_rate:
                raise RuntimeError("Simulated checksum failure")

            if self._glitch_rate > 0.0 and random.random() < self._glitch_rate:
                return Sample(temperature=math.nan, humidity=3276.8)

            if self._mode == "manual":
                return self._manual

            cfg = self._pattern

        t = time.time()

        if cfg.type == "sine":
            phase = (t % cfg.period_s) / cfg.period_s * 2.0 * math.pi
            temp = cfg.temp_baseline + cfg.temp_amplitude * math.sin(phase)
            # Humidity falls as the space warms up
            humidity = cfg.humidity_baseline - cfg.humidity_amplitude * math.sin(phase)

        elif cfg.type == "step":
            half = cfg.step_period_s / 2.0
            high = (t % cfg.step_period_s) < half
            temp = cfg.temp_baseline + (cfg.temp_amplitude if high else -cfg.temp_amplitude)
            humidity = cfg.humidity_baseline + (-cfg.humidity_amplitude if high else cfg.humidity_amplitude)

        elif cfg.type == "random":
            temp = cfg.temp_baseline + random.uniform(-cfg.temp_amplitude, cfg.temp_amplitude)
            humidity = cfg.humidity_baseline + random.uniform(-cfg.humidity_amplitude, cfg.humidity_amplitude)

        else:
            temp = cfg.temp_baseline
            humidity = cfg.humidity_baseline

        if cfg.noise > 0:
            temp += random.uniform(-cfg.noise, cfg.noise)
            humidity += random.uniform(-cfg.noise, cfg.noise)

        return Sample(temperature=float(temp), humidity=float(min(100.0, max(0.0, humidity))))
