from __future__ import annotations

import logging

from .base import Sensor
from ..domain.models import Sample

logger = logging.getLogger(__name__)


class DHT22Sensor(Sensor):
    """DHT22 on a Raspberry Pi GPIO pin via adafruit-circuitpython-dht.

    The DHT22 fails often (timing-sensitive one-wire protocol); each failure
    surfaces as an exception from read() and the caller skips the tick.
    """

    def __init__(self, pin: int, sensor_id: str = "dht22"):
        # Pi-only libraries, imported here so the rest of the package runs anywhere
        import adafruit_dht
        import board

        gpio_pin = getattr(board, f"D{pin}", None)
        if gpio_pin is None:
            raise ValueError(f"Invalid GPIO pin: D{pin}")
        self._device = adafruit_dht.DHT22(gpio_pin, use_pulseio=False)
        self._sensor_id = sensor_id
        logger.info("DHT22 sensor initialized on pin D%s", pin)

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    def read(self) -> Sample:
        temp = self._device.temperature
        humidity = self._device.humidity
        if temp is None or humidity is None:
            raise RuntimeError("DHT22 returned no data")
        return Sample(temperature=float(temp), humidity=float(humidity))

    def close(self) -> None:
        self._device.exit()
        logger.info("DHT22 sensor released")
