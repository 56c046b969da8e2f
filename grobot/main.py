from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fastapi import FastAPI, HTTPException

from .core.config import Settings
from .domain.config import ControlConfig
from .domain.environment import EnvironmentAggregator
from .sensors.base import Sensor
from .sensors.simulated_climate_sensor import SimulatedClimateSensor
from .services.actuators import FanTask, LightTask
from .services.bus import ControlBus
from .services.status import StatusBroadcaster
from .services.supervisor import Supervisor

from .api.routes import router as api_router
import grobot.api.routes as routes_module


logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    supervisor: Supervisor
    sensor: Sensor
    sim_sensor: Optional[SimulatedClimateSensor] = None
    cleanups: List[Callable[[], None]] = field(default_factory=list)

    def close(self) -> None:
        for fn in reversed(self.cleanups):
            try:
                fn()
            except Exception:
                logger.warning("Cleanup %r failed", fn, exc_info=True)


def build_sensor(settings: Settings) -> Sensor:
    if settings.sensor_mode.lower() == "pi":
        from .sensors.dht22_sensor import DHT22Sensor
        return DHT22Sensor(pin=settings.sensor_pin)

    # default to sim
    return SimulatedClimateSensor(
        failure_rate=settings.sim_failure_rate,
        glitch_rate=settings.sim_glitch_rate,
    )


def build_runtime(settings: Settings, config: ControlConfig) -> Runtime:
    """Wire sensor, outputs, bus, actuator tasks and supervisor together."""
    sensor = build_sensor(settings)
    cleanups: List[Callable[[], None]] = [sensor.close]

    if settings.actuator_mode.lower() == "pi":
        from .drivers.gpio import GpioLight, PwmFan
        light = GpioLight(settings.light_pin)
        fan = PwmFan(settings.fan_pin, settings.fan_pwm_frequency)
        cleanups += [light.cleanup, fan.cleanup]
    else:
        from .drivers.actuators_sim import SimulatedFan, SimulatedLight
        light = SimulatedLight()
        fan = SimulatedFan()

    bus = ControlBus(settings.bus_capacity)
    # Subscribe before Setup is published so no task misses it
    actuators = [
        LightTask(bus.subscribe("light"), light),
        FanTask(bus.subscribe("fan"), fan),
    ]

    supervisor = Supervisor(
        settings=settings,
        config=config,
        sensor=sensor,
        bus=bus,
        actuators=actuators,
        aggregator=EnvironmentAggregator(settings.history_size),
        status=StatusBroadcaster(
            port=settings.status_port,
            listen_addr=settings.listen_addr,
            broadcast_addr=settings.broadcast_addr,
        ),
    )
    sim_sensor = sensor if isinstance(sensor, SimulatedClimateSensor) else None
    return Runtime(supervisor=supervisor, sensor=sensor, sim_sensor=sim_sensor, cleanups=cleanups)


def create_app(runtime: Runtime) -> FastAPI:
    """Status API whose lifespan runs the supervisor."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s HTTP status API", runtime.supervisor.settings.app_name)
        await runtime.supervisor.start()
        try:
            yield
        finally:
            await runtime.supervisor.stop()
            runtime.close()
            logger.info("Shutdown complete")

    app = FastAPI(title=runtime.supervisor.settings.app_name, lifespan=lifespan)

    def get_supervisor() -> Supervisor:
        return runtime.supervisor

    def get_sim_sensor() -> SimulatedClimateSensor:
        if runtime.sim_sensor is None:
            raise HTTPException(status_code=404, detail="Sim sensor not available (sensor_mode is not 'sim').")
        return runtime.sim_sensor

    # Make the dependency functions in routes resolve to the real ones
    app.dependency_overrides[routes_module.get_supervisor] = get_supervisor
    app.dependency_overrides[routes_module.get_sim_sensor] = get_sim_sensor

    app.include_router(api_router, prefix="/api")
    return app
