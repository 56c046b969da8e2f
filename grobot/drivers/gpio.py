from __future__ import annotations

import logging

from ..domain.config import FanPower

logger = logging.getLogger(__name__)


def _gpio():
    # Pi-only library, imported on first use so the package imports anywhere
    import RPi.GPIO as GPIO

    GPIO.setmode(GPIO.BCM)
    GPIO.setwarnings(False)
    return GPIO


class GpioLight:
    """Light on a low-triggered relay: on drives the pin LOW."""

    actuator_id = "light_relay"

    def __init__(self, pin: int) -> None:
        self._gpio = _gpio()
        self.pin = pin
        # Start switched off
        self._gpio.setup(pin, self._gpio.OUT, initial=self._gpio.HIGH)
        logger.info("Light relay on BCM%s ready", pin)

    def on(self) -> None:
        self._gpio.output(self.pin, self._gpio.LOW)

    def off(self) -> None:
        self._gpio.output(self.pin, self._gpio.HIGH)

    def cleanup(self) -> None:
        self.off()
        self._gpio.cleanup(self.pin)


class PwmFan:
    """4-pin PWM fan. Errors from the PWM device propagate to the caller."""

    actuator_id = "fan_pwm"

    def __init__(self, pin: int, frequency: float = 25_000.0) -> None:
        self._gpio = _gpio()
        self.pin = pin
        self._gpio.setup(pin, self._gpio.OUT)
        self._pwm = self._gpio.PWM(pin, frequency)
        # Start the fan at 0% power
        self._pwm.start(0.0)
        self._power = FanPower(0)
        logger.info("Fan PWM on BCM%s at %.0f Hz ready", pin, frequency)

    def set_power(self, power: FanPower) -> None:
        self._power = power

    def _set_duty_cycle(self, duty_cycle: float) -> None:
        # RPi.GPIO takes percent
        self._pwm.ChangeDutyCycle(duty_cycle * FanPower.CONVERSION_FACTOR)

    def on(self) -> None:
        self._set_duty_cycle(self._power.as_duty_cycle())

    def off(self) -> None:
        self._set_duty_cycle(0.0)

    def cleanup(self) -> None:
        self._pwm.stop()
        self._gpio.cleanup(self.pin)
