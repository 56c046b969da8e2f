from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from ..domain.config import ControlConfig
from ..domain.errors import BusClosed, ProtocolViolation
from ..domain.interfaces import FanOutput, LightOutput
from ..domain.models import Environment, Exit, Message, Setup, Time
from .bus import Subscription

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    AWAITING_SETUP = "awaiting_setup"
    RUNNING = "running"
    TERMINATED = "terminated"


class ActuatorTask(ABC):
    """Long-running bus consumer that drives one actuator.

    Waits for Setup, then keeps the latest Time and Environment it has seen
    and re-applies its decision after every update once both are known.
    Stops on Exit or when the bus closes.
    """

    name = "actuator"

    def __init__(self, subscription: Subscription) -> None:
        self._sub = subscription
        self.state = TaskState.AWAITING_SETUP
        self.config: Optional[ControlConfig] = None
        self.last_time: Optional[datetime] = None
        self.last_environment: Optional[Tuple[float, float]] = None
        self.is_on: Optional[bool] = None

    @property
    def dropped_messages(self) -> int:
        return self._sub.dropped

    def _prepare(self, config: ControlConfig) -> None:
        """Called once with this task's private copy of the configuration."""

    @abstractmethod
    def _decide(self, config: ControlConfig, when: datetime, environment: Tuple[float, float]) -> bool:
        ...

    @abstractmethod
    def _apply(self, on: bool) -> None:
        ...

    def _shutdown(self) -> None:
        pass

    async def _await_setup(self) -> Optional[ControlConfig]:
        try:
            msg = await self._sub.recv()
        except BusClosed:
            logger.info("%s task: bus closed before setup", self.name)
            return None
        if not isinstance(msg, Setup):
            raise ProtocolViolation(
                f"{self.name} task expected Setup first, got {type(msg).__name__}"
            )
        logger.info("%s task received setup message with config %r", self.name, msg.config)
        return msg.config.model_copy(deep=True)

    async def run(self) -> None:
        try:
            config = await self._await_setup()
            if config is None:
                return
            self.config = config
            self._prepare(config)
            self.state = TaskState.RUNNING
            await self._loop(config)
        except Exception:
            logger.exception("%s task failed", self.name)
            raise
        finally:
            self.state = TaskState.TERMINATED
            self._sub.close()
            self._shutdown()

    async def _loop(self, config: ControlConfig) -> None:
        while True:
            try:
                msg: Message = await self._sub.recv()
            except BusClosed:
                logger.info("%s task: bus closed, exiting", self.name)
                return

            if isinstance(msg, Exit):
                logger.info("Received exit message on %s task, exiting", self.name)
                return
            if isinstance(msg, Time):
                logger.info("%s task received time update with time %s", self.name, msg.at)
                self.last_time = msg.at
            elif isinstance(msg, Environment):
                logger.info(
                    "%s task received environment update with temp %.1fF, humidity %.1f%%",
                    self.name, msg.temperature, msg.humidity,
                )
                self.last_environment = (msg.temperature, msg.humidity)
            elif isinstance(msg, Setup):
                logger.warning("%s task ignoring repeated setup message", self.name)
                continue

            if self.last_time is not None and self.last_environment is not None:
                on = self._decide(config, self.last_time, self.last_environment)
                logger.info("%s task turning %s %s", self.name, self.name, "on" if on else "off")
                self._apply(on)
                self.is_on = on


class LightTask(ActuatorTask):
    name = "light"

    def __init__(self, subscription: Subscription, light: LightOutput) -> None:
        super().__init__(subscription)
        self._light = light
        self._light.off()

    def _decide(self, config: ControlConfig, when: datetime, environment: Tuple[float, float]) -> bool:
        return config.light_on(when, environment)

    def _apply(self, on: bool) -> None:
        if on:
            self._light.on()
        else:
            self._light.off()

    def _shutdown(self) -> None:
        self._light.off()


class FanTask(ActuatorTask):
    name = "fan"

    def __init__(self, subscription: Subscription, fan: FanOutput) -> None:
        super().__init__(subscription)
        self._fan = fan

    def _prepare(self, config: ControlConfig) -> None:
        self._fan.set_power(config.fan_power())
        logger.info("fan task using power %r", config.fan_power())

    def _decide(self, config: ControlConfig, when: datetime, environment: Tuple[float, float]) -> bool:
        return config.fan_on(when, environment)

    def _apply(self, on: bool) -> None:
        # PWM errors propagate and end this task
        if on:
            self._fan.on()
        else:
            self._fan.off()

    def _shutdown(self) -> None:
        try:
            self._fan.off()
        except Exception:
            logger.warning("fan task could not stop the fan on shutdown", exc_info=True)
