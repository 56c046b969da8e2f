import asyncio
import datetime as dt
from pathlib import Path

import pytest

from grobot.domain.config import ControlConfig, FanPower
from grobot.domain.errors import ProtocolViolation
from grobot.domain.models import Environment, Exit, Setup, Time
from grobot.drivers.actuators_sim import SimulatedFan, SimulatedLight
from grobot.services.actuators import ActuatorTask, FanTask, LightTask, TaskState
from grobot.services.bus import ControlBus

CONFIG_PATH = Path(__file__).resolve().parents[1] / "configs" / "default.toml"

MORNING = dt.datetime(2023, 4, 23, 8, 1)
NOON = dt.datetime(2023, 4, 23, 12, 30)
NOMINAL = Environment(temperature=72.0, humidity=60.0)


class RecordingLight:
    actuator_id = "light_rec"

    def __init__(self) -> None:
        self.calls = []

    def on(self) -> None:
        self.calls.append("on")

    def off(self) -> None:
        self.calls.append("off")


class RecordingFan:
    actuator_id = "fan_rec"

    def __init__(self) -> None:
        self.calls = []

    def set_power(self, power: FanPower) -> None:
        self.calls.append(("power", power.percent))

    def on(self) -> None:
        self.calls.append("on")

    def off(self) -> None:
        self.calls.append("off")


def _config() -> ControlConfig:
    return ControlConfig.from_file(CONFIG_PATH)


def _feed(bus: ControlBus, *messages, close: bool = False) -> None:
    for m in messages:
        bus.publish(m)
    if close:
        bus.close()


def test_light_task_follows_decisions() -> None:
    bus = ControlBus()
    light = RecordingLight()
    task = LightTask(bus.subscribe("light"), light)
    config = _config()

    _feed(bus, Setup(config), Time(MORNING), NOMINAL, Time(NOON), Exit())
    asyncio.run(task.run())

    # off at construction, nothing until both time and environment are known,
    # on at 08:01, off at 12:30, off again on shutdown
    assert light.calls == ["off", "on", "off", "off"]
    assert task.state is TaskState.TERMINATED
    assert task.is_on is False
    assert task.last_time == NOON
    assert task.last_environment == (72.0, 60.0)


def test_fan_task_sets_power_before_switching() -> None:
    bus = ControlBus()
    fan = RecordingFan()
    task = FanTask(bus.subscribe("fan"), fan)

    _feed(bus, Setup(_config()), Environment(72.0, 60.0), Time(MORNING), Exit())
    asyncio.run(task.run())

    assert fan.calls == [("power", 75.0), "on", "off"]
    assert task.is_on is True


def test_environment_update_alone_reapplies_decision() -> None:
    bus = ControlBus()
    light = RecordingLight()
    task = LightTask(bus.subscribe("light"), light)

    # too hot at 08:01 clamps the light off without a new time message
    _feed(bus, Setup(_config()), Time(MORNING), NOMINAL, Environment(90.0, 60.0), Exit())
    asyncio.run(task.run())

    assert light.calls == ["off", "on", "off", "off"]


def test_first_message_must_be_setup() -> None:
    bus = ControlBus()
    light = RecordingLight()
    task = LightTask(bus.subscribe("light"), light)

    _feed(bus, Time(MORNING))

    with pytest.raises(ProtocolViolation):
        asyncio.run(task.run())
    assert task.state is TaskState.TERMINATED
    assert task.config is None
    assert light.calls == ["off", "off"]
    assert bus.subscribers() == []


def test_task_keeps_private_copy_of_config() -> None:
    bus = ControlBus()
    task = FanTask(bus.subscribe("fan"), RecordingFan())
    config = _config()

    _feed(bus, Setup(config), Exit())
    asyncio.run(task.run())

    assert task.config == config
    assert task.config is not config
    assert task.config.thresholds is not config.thresholds


def test_repeated_setup_is_ignored() -> None:
    bus = ControlBus()
    fan = RecordingFan()
    task = FanTask(bus.subscribe("fan"), fan)
    first = _config()
    second = _config()
    second.fan.power = FanPower(10)

    _feed(bus, Setup(first), Setup(second), Time(MORNING), NOMINAL, Exit())
    asyncio.run(task.run())

    assert task.config.fan_power() == FanPower(75)
    assert fan.calls.count(("power", 75.0)) == 1
    assert ("power", 10.0) not in fan.calls


def test_bus_closed_before_setup_ends_quietly() -> None:
    bus = ControlBus()
    light = RecordingLight()
    task = LightTask(bus.subscribe("light"), light)

    _feed(bus, close=True)
    asyncio.run(task.run())

    assert task.state is TaskState.TERMINATED
    assert task.is_on is None
    assert light.calls == ["off", "off"]


def test_bus_closed_while_running_ends_task() -> None:
    bus = ControlBus()
    light = RecordingLight()
    task = LightTask(bus.subscribe("light"), light)

    _feed(bus, Setup(_config()), Time(MORNING), NOMINAL, close=True)
    asyncio.run(task.run())

    assert task.state is TaskState.TERMINATED
    assert light.calls == ["off", "on", "off"]


def test_simulated_fan_runs_at_configured_duty_cycle() -> None:
    bus = ControlBus()
    fan = SimulatedFan()
    task = FanTask(bus.subscribe("fan"), fan)

    async def scenario():
        runner = asyncio.create_task(task.run())
        _feed(bus, Setup(_config()), Time(MORNING), NOMINAL)
        for _ in range(10):
            await asyncio.sleep(0)
        duty = fan.duty_cycle
        bus.publish(Exit())
        await runner
        return duty

    assert asyncio.run(scenario()) == pytest.approx(0.75)
    assert fan.duty_cycle == 0.0


def test_fan_write_error_ends_only_the_fan_task() -> None:
    bus = ControlBus()
    light = SimulatedLight()
    fan = SimulatedFan(fail_after=0)
    light_task = LightTask(bus.subscribe("light"), light)
    fan_task = FanTask(bus.subscribe("fan"), fan)

    async def scenario():
        runners = [asyncio.create_task(light_task.run()), asyncio.create_task(fan_task.run())]
        _feed(bus, Setup(_config()), Time(MORNING), NOMINAL)
        for _ in range(10):
            await asyncio.sleep(0)
        # the fan task has detached, the light task still listens
        assert [s.name for s in bus.subscribers()] == ["light"]
        assert light.state is True
        bus.publish(Exit())
        return await asyncio.gather(*runners, return_exceptions=True)

    light_result, fan_result = asyncio.run(scenario())

    assert light_result is None
    assert isinstance(fan_result, OSError)
    assert fan_task.state is TaskState.TERMINATED
    assert light.state is False


def test_task_needs_only_decide_and_apply() -> None:
    applied = []

    class AlwaysOn(ActuatorTask):
        name = "always_on"

        def _decide(self, config, when, environment) -> bool:
            return True

        def _apply(self, on: bool) -> None:
            applied.append(on)

    bus = ControlBus()
    task = AlwaysOn(bus.subscribe("always_on"))

    _feed(bus, Setup(_config()), Time(NOON), NOMINAL, Exit())
    asyncio.run(task.run())

    assert applied == [True]
    assert task.state is TaskState.TERMINATED
