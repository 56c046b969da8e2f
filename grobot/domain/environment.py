from __future__ import annotations
import logging
import math
from collections import deque
from typing import Callable, Deque, Iterable, List

from .models import Sample

logger = logging.getLogger(__name__)


def ctof(c: float) -> float:
    return c * (9.0 / 5.0) + 32.0


def trimmed_mean(values: Iterable[float]) -> float:
    """Mean of the values lying within one sample standard deviation of the mean.

    Returns NaN for fewer than two values, where the n-1 standard deviation is
    undefined. If nothing survives the trim, the untrimmed mean is returned.
    """
    data = list(values)
    if len(data) < 2:
        return math.nan

    mean = sum(data) / len(data)
    # d * d overflows to inf where d ** 2 would raise
    sd = math.sqrt(sum((v - mean) * (v - mean) for v in data) / (len(data) - 1))
    kept = [v for v in data if mean - sd <= v <= mean + sd]
    if not kept:
        return mean
    return sum(kept) / len(kept)


class EnvironmentAggregator:
    """Ring buffer of recent samples with outlier-trimmed estimates."""

    DEFAULT_CAPACITY = 8
    # stdev needs n-1 > 0
    MIN_READINGS = 2

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._readings: Deque[Sample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._readings.maxlen or 0

    def __len__(self) -> int:
        return len(self._readings)

    @property
    def ready(self) -> bool:
        return len(self._readings) >= self.MIN_READINGS

    def readings(self) -> List[Sample]:
        return list(self._readings)

    def add_reading(self, sample: Sample) -> bool:
        if not sample.is_valid():
            logger.debug("Dropped invalid sensor reading: %s", sample)
            return False
        logger.info("Added new sensor reading: %s", sample)
        self._readings.append(sample)
        return True

    def _clean(self, field: Callable[[Sample], float]) -> float:
        return trimmed_mean(field(r) for r in self._readings)

    def temperature(self) -> float:
        """Cleaned temperature in Fahrenheit (NaN until ready)."""
        temp = ctof(self._clean(lambda r: r.temperature))
        logger.info("Cleaned temperature reading: %.1fF", temp)
        return temp

    def humidity(self) -> float:
        """Cleaned relative humidity in percent (NaN until ready)."""
        humidity = self._clean(lambda r: r.humidity)
        logger.info("Cleaned humidity reading: %.1f%%", humidity)
        return humidity
