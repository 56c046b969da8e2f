from __future__ import annotations
from typing import Protocol, runtime_checkable

from .config import FanPower


@runtime_checkable
class LightOutput(Protocol):
    """Relay driven light. Switching never fails."""

    actuator_id: str

    def on(self) -> None:
        ...

    def off(self) -> None:
        ...


@runtime_checkable
class FanOutput(Protocol):
    """PWM fan. on() applies the configured duty cycle, off() applies 0.0.

    Both may raise if the PWM device misbehaves.
    """

    actuator_id: str

    def set_power(self, power: FanPower) -> None:
        ...

    def on(self) -> None:
        ...

    def off(self) -> None:
        ...
