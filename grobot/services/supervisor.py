from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..api.schemas import NetworkUpdate
from ..core.config import Settings
from ..core.timeutil import now_local
from ..domain.config import ControlConfig
from ..domain.environment import EnvironmentAggregator
from ..domain.models import Environment, Exit, Setup, Time
from ..sensors.base import Sensor
from .actuators import ActuatorTask
from .bus import ControlBus
from .status import StatusBroadcaster


logger = logging.getLogger(__name__)


@dataclass
class LiveState:
    running: bool = False
    cycles: int = 0
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    last_time: Optional[datetime] = None
    sensor_failures: int = 0


class Supervisor:
    """Owns the sampling cadence and is the only producer on the control bus.

    Publishes Setup once, then per cycle an Environment estimate followed by
    the local Time, and finally Exit when asked to stop. Every sleep doubles
    as a wait on the stop request, so shutdown takes at most one interval.
    """

    def __init__(
        self,
        settings: Settings,
        config: ControlConfig,
        sensor: Sensor,
        bus: ControlBus,
        actuators: Sequence[ActuatorTask],
        aggregator: Optional[EnvironmentAggregator] = None,
        status: Optional[StatusBroadcaster] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings
        self._config = config
        self._sensor = sensor
        self._bus = bus
        self._actuators = list(actuators)
        self._aggregator = aggregator or EnvironmentAggregator(settings.history_size)
        self._status = status
        self._clock = clock or (lambda: now_local(settings.timezone))

        self._task: Optional[asyncio.Task] = None
        self._actuator_tasks: List[asyncio.Task] = []
        self._stop = asyncio.Event()

        self.live = LiveState()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ControlConfig:
        return self._config

    @property
    def actuators(self) -> List[ActuatorTask]:
        return list(self._actuators)

    @property
    def aggregator(self) -> EnvironmentAggregator:
        return self._aggregator

    @property
    def bus(self) -> ControlBus:
        return self._bus

    async def start(self) -> None:
        self._stop.clear()
        if self._status is not None:
            await self._status.open()
        self._actuator_tasks = [
            asyncio.create_task(a.run(), name=f"{a.name}_task") for a in self._actuators
        ]
        self._task = asyncio.create_task(self._run(), name="supervisor_loop")

    def request_stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested")
            self._stop.set()

    async def wait(self) -> None:
        if self._task:
            await self._task

    async def stop(self) -> None:
        self.request_stop()
        await self.wait()
        self._task = None

    async def _pause(self, seconds: float) -> bool:
        """Sleep, returning True early if a stop was requested."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _sample(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            # Sensor drivers block; keep them off the event loop
            sample = await loop.run_in_executor(None, self._sensor.read)
        except Exception as e:
            self.live.sensor_failures += 1
            logger.warning("Failed to read from sensor %s: %s", self._sensor.sensor_id, e)
            return
        self._aggregator.add_reading(sample)

    async def _take_readings(self, count: int) -> bool:
        """Take count samples at the reading interval. True if stopped meanwhile."""
        for _ in range(count):
            await self._sample()
            if await self._pause(self._settings.sensor_reading_interval):
                return True
        return False

    def _publish_environment(self) -> None:
        if not self._aggregator.ready:
            logger.warning(
                "Only %d valid readings buffered, skipping environment update",
                len(self._aggregator),
            )
            return

        temp = self._aggregator.temperature()
        humidity = self._aggregator.humidity()
        self.live.temperature = temp
        self.live.humidity = humidity

        if self._status is not None:
            self._status.send(
                NetworkUpdate(temperature=temp, humidity=humidity, timestamp=self._clock())
            )
        self._bus.publish(Environment(temperature=temp, humidity=humidity))

    def _publish_time(self) -> None:
        now = self._clock()
        self.live.last_time = now
        self._bus.publish(Time(at=now))

    async def _run(self) -> None:
        logger.info(
            "Supervisor started (initial_readings=%s readings=%s interval=%ss cycle=%ss)",
            self._settings.initial_sensor_readings,
            self._settings.sensor_readings,
            self._settings.sensor_reading_interval,
            self._settings.cycle_interval,
        )
        self.live.running = True

        try:
            self._bus.publish(Setup(config=self._config))

            logger.info("Taking initial sensor readings")
            if await self._take_readings(self._settings.initial_sensor_readings):
                return

            while True:
                logger.info("Taking sensor readings")
                if await self._take_readings(self._settings.sensor_readings):
                    return

                self._publish_environment()
                self._publish_time()
                self.live.cycles += 1

                logger.info("Sleeping for cycle interval")
                if await self._pause(self._settings.cycle_interval):
                    return
        finally:
            await self._shutdown()

    async def _shutdown(self) -> None:
        logger.info("Got exit request, stopping actuators")
        if not self._bus.closed:
            self._bus.publish(Exit())
            self._bus.close("supervisor exiting")

        results = await asyncio.gather(*self._actuator_tasks, return_exceptions=True)
        for actuator, result in zip(self._actuators, results):
            if isinstance(result, BaseException):
                logger.error("%s task ended with error: %r", actuator.name, result)

        if self._status is not None:
            self._status.close()

        self.live.running = False
        logger.info("grobot done, goodbye")
