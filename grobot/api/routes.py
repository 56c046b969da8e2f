from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends

from ..core.timeutil import now_local
from ..sensors.simulated_climate_sensor import PatternConfig, SimulatedClimateSensor
from ..services.supervisor import Supervisor
from .schemas import ActuatorStatus, LiveStatus, SimManualRequest, SimPatternRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters, overridden in main via app.dependency_overrides ---
def get_supervisor() -> Supervisor:  # overridden in main
    raise RuntimeError("Supervisor dependency not configured")

def get_sim_sensor() -> SimulatedClimateSensor:  # overridden in main
    raise RuntimeError("Simulated sensor dependency not configured")


def _finite(v):
    if v is None or not math.isfinite(v):
        return None
    return v


@router.get("/health")
async def health(svc: Supervisor = Depends(get_supervisor)):
    return {"ok": svc.live.running}


@router.get("/live", response_model=LiveStatus)
async def get_live(svc: Supervisor = Depends(get_supervisor)):
    actuators = []
    for a in svc.actuators:
        temp, humidity = a.last_environment or (None, None)
        actuators.append(
            ActuatorStatus(
                name=a.name,
                state=a.state.value,
                is_on=a.is_on,
                last_time=a.last_time,
                last_temperature=_finite(temp),
                last_humidity=_finite(humidity),
                dropped_messages=a.dropped_messages,
            )
        )
    return LiveStatus(
        app=svc.settings.app_name,
        now_local=now_local(svc.settings.timezone),
        running=svc.live.running,
        cycles=svc.live.cycles,
        buffered_readings=len(svc.aggregator),
        temperature=_finite(svc.live.temperature),
        humidity=_finite(svc.live.humidity),
        last_time=svc.live.last_time,
        actuators=actuators,
    )


@router.get("/config")
async def get_config(svc: Supervisor = Depends(get_supervisor)):
    cfg = svc.config
    return {
        "fan": {
            "power": cfg.fan_power().percent,
            "duty_cycle": cfg.fan_power().as_duty_cycle(),
            "schedule": [
                {"time": e.time.strftime("%H:%M"), "action": e.action.value}
                for e in cfg.fan.schedule
            ],
        },
        "light": {
            "schedule": [
                {"time": e.time.strftime("%H:%M"), "action": e.action.value}
                for e in cfg.light.schedule
            ],
        },
        "thresholds": cfg.thresholds.model_dump(),
    }


# --- Simulation endpoints ---
@router.get("/sim/status")
async def sim_status(sensor: SimulatedClimateSensor = Depends(get_sim_sensor)):
    return sensor.status()


@router.post("/sim/enable")
async def sim_enable(sensor: SimulatedClimateSensor = Depends(get_sim_sensor)):
    sensor.enable()
    return {"ok": True, "enabled": True}


@router.post("/sim/disable")
async def sim_disable(sensor: SimulatedClimateSensor = Depends(get_sim_sensor)):
    sensor.disable()
    return {"ok": True, "enabled": False}


@router.post("/sim/manual")
async def sim_set_manual(req: SimManualRequest, sensor: SimulatedClimateSensor = Depends(get_sim_sensor)):
    sensor.set_manual(req.temperature, req.humidity)
    logger.info("Simulated sensor set to %.1fC %.1f%%", req.temperature, req.humidity)
    return {"ok": True, "mode": "manual", "temperature": req.temperature, "humidity": req.humidity}


@router.post("/sim/pattern")
async def sim_set_pattern(req: SimPatternRequest, sensor: SimulatedClimateSensor = Depends(get_sim_sensor)):
    cfg = PatternConfig(**req.model_dump())
    sensor.set_pattern(cfg)
    return {"ok": True, "pattern": cfg.__dict__}
