from __future__ import annotations

from abc import ABC, abstractmethod

from ..domain.models import Sample


class Sensor(ABC):
    """Domain-facing temperature/humidity sensor abstraction."""

    @property
    @abstractmethod
    def sensor_id(self) -> str:
        ...

    @abstractmethod
    def read(self) -> Sample:
        """Return one (Celsius, %RH) sample. Raise on failure."""
        ...

    def close(self) -> None:
        pass
