from __future__ import annotations
import logging
from typing import Optional

from ..domain.config import FanPower

logger = logging.getLogger(__name__)


class SimulatedLight:
    actuator_id = "light_sim_01"

    def __init__(self) -> None:
        self._state = False
        self.switch_count = 0

    @property
    def state(self) -> bool:
        return self._state

    def on(self) -> None:
        self._state = True
        self.switch_count += 1
        logger.info("LIGHT on")

    def off(self) -> None:
        self._state = False
        self.switch_count += 1
        logger.info("LIGHT off")


class SimulatedFan:
    actuator_id = "fan_sim_01"

    def __init__(self, fail_after: Optional[int] = None) -> None:
        self._power = FanPower(0)
        self._duty_cycle = 0.0
        # Raise on the n-th switch, to exercise PWM error handling
        self._fail_after = fail_after
        self.switch_count = 0

    @property
    def duty_cycle(self) -> float:
        return self._duty_cycle

    def set_power(self, power: FanPower) -> None:
        self._power = power

    def _apply(self, duty_cycle: float) -> None:
        self.switch_count += 1
        if self._fail_after is not None and self.switch_count > self._fail_after:
            raise OSError("Simulated PWM write failure")
        self._duty_cycle = duty_cycle
        logger.info("FAN duty_cycle=%.2f", duty_cycle)

    def on(self) -> None:
        self._apply(self._power.as_duty_cycle())

    def off(self) -> None:
        self._apply(0.0)
