import datetime as dt
import itertools
import math
from pathlib import Path

import pytest

from grobot.domain.config import ControlConfig, FanPower
from grobot.domain.errors import ConfigurationError
from grobot.domain.schedule import Action

CONFIG = (Path(__file__).resolve().parents[1] / "configs" / "default.toml").read_text()

NOMINAL_TEMP = 72.0
NOMINAL_HUMIDITY = 60.0
NOMINAL = (NOMINAL_TEMP, NOMINAL_HUMIDITY)


def _at(hour: int, minute: int = 0) -> dt.datetime:
    return dt.datetime(2023, 4, 23, hour, minute)


def _schedule(*events: tuple) -> str:
    return "".join(f'[[{{name}}.schedule]]\ntime = "{t}"\naction = "{a}"\n\n' for t, a in events)


def _toml(
    light=(("06:00", "On"), ("09:00", "Off")),
    fan=(("06:00", "On"), ("07:00", "Off")),
    power=75.0,
    min_temp=62.0,
    max_temp=82.0,
    min_humidity=40.0,
    max_humidity=80.0,
) -> str:
    return (
        f"[fan]\npower = {power}\n\n"
        + _schedule(*fan).replace("{name}", "fan")
        + "[light]\n\n"
        + _schedule(*light).replace("{name}", "light")
        + "[thresholds]\n"
        + f"min_temp = {min_temp}\nmax_temp = {max_temp}\n"
        + f"min_humidity = {min_humidity}\nmax_humidity = {max_humidity}\n"
    )


def _config(**kwargs) -> ControlConfig:
    return ControlConfig.from_toml(_toml(**kwargs))


def test_parse_default_config() -> None:
    config = ControlConfig.from_toml(CONFIG)

    assert config.fan_power().as_duty_cycle() == pytest.approx(0.75)
    assert [e.action for e in config.light.schedule] == [Action.ON, Action.OFF] * 2


def test_default_config_times() -> None:
    config = ControlConfig.from_toml(CONFIG)

    assert config.fan_on(_at(8, 1), NOMINAL), "fan expected on at 8am"
    assert config.light_on(_at(8, 1), NOMINAL), "light expected on at 8am"

    assert config.fan_off(_at(12, 30), NOMINAL), "fan expected off at 1230pm"
    assert config.light_off(_at(12, 30), NOMINAL), "light expected off at 1230pm"


def test_default_config_second_window() -> None:
    config = ControlConfig.from_toml(CONFIG)

    assert config.light_on(_at(19, 30), NOMINAL)
    assert config.light_off(_at(22, 0), NOMINAL)


def test_light_follows_schedule() -> None:
    config = _config()

    assert config.light_on(_at(7, 0), (72.0, 60.0)) is True
    assert config.light_on(_at(12, 30), (72.0, 60.0)) is False


def test_light_off_when_too_hot_even_on_schedule() -> None:
    config = _config()

    assert config.light_on(_at(12, 30), (90.0, 60.0)) is False
    assert config.light_on(_at(7, 0), (90.0, 60.0)) is False


def test_light_on_when_cold_or_humid_outside_schedule() -> None:
    config = _config()

    assert config.light_on(_at(12, 30), (55.0, 60.0)) is True
    assert config.light_on(_at(12, 30), (72.0, 85.0)) is True


def test_fan_on_when_humid_outside_schedule() -> None:
    config = _config(min_humidity=40, max_humidity=80)

    assert config.fan_on(_at(12, 30), (72.0, 85.0)) is True


def test_fan_on_when_hot_outside_schedule() -> None:
    config = _config()

    assert config.fan_on(_at(12, 30), (85.0, 60.0)) is True


def test_fan_off_when_dry_or_cold_even_on_schedule() -> None:
    config = _config()

    assert config.fan_on(_at(6, 30), NOMINAL) is True
    assert config.fan_on(_at(6, 30), (72.0, 30.0)) is False
    assert config.fan_on(_at(6, 30), (55.0, 60.0)) is False
    # cold wins over humid
    assert config.fan_on(_at(12, 30), (55.0, 90.0)) is False


def test_schedule_boundaries_are_half_open() -> None:
    config = _config()

    assert config.light_on(_at(6, 0), NOMINAL) is True
    assert config.light_on(_at(8, 59), NOMINAL) is True
    assert config.light_on(_at(9, 0), NOMINAL) is False
    assert config.light_on(_at(5, 59), NOMINAL) is False

    assert config.fan_on(_at(6, 0), NOMINAL) is True
    assert config.fan_on(_at(7, 0), NOMINAL) is False


def test_off_is_exact_negation_of_on() -> None:
    config = ControlConfig.from_toml(CONFIG)
    times = [_at(h, m) for h in range(24) for m in (0, 30)]
    environments = itertools.product(
        (50.0, 62.0, 72.0, 82.0, 90.0, math.nan), (20.0, 40.0, 60.0, 80.0, 95.0, math.nan)
    )

    for env in environments:
        for t in times:
            assert config.light_off(t, env) == (not config.light_on(t, env))
            assert config.fan_off(t, env) == (not config.fan_on(t, env))


def test_override_off_dominates_everything() -> None:
    config = ControlConfig.from_toml(CONFIG)

    for t in (_at(h) for h in range(24)):
        # too hot for the light, whatever the humidity
        assert config.light_on(t, (95.0, 90.0)) is False
        # too cold for the fan, whatever the humidity
        assert config.fan_on(t, (50.0, 90.0)) is False
        # too dry for the fan
        assert config.fan_on(t, (90.0, 10.0)) is False


def test_nan_environment_falls_back_to_schedule() -> None:
    config = _config()
    unknown = (math.nan, math.nan)

    assert config.light_on(_at(7, 0), unknown) is True
    assert config.light_on(_at(12, 30), unknown) is False


def test_aware_times_use_local_time_of_day() -> None:
    config = _config()
    tz = dt.timezone(dt.timedelta(hours=-7))

    assert config.light_on(dt.datetime(2023, 4, 23, 7, 0, tzinfo=tz), NOMINAL) is True


def test_multiple_windows_per_day() -> None:
    config = _config(light=(("06:00", "On"), ("07:00", "Off"), ("20:00", "On"), ("21:00", "Off")))

    assert config.light_on(_at(6, 30), NOMINAL) is True
    assert config.light_on(_at(12, 0), NOMINAL) is False
    assert config.light_on(_at(20, 30), NOMINAL) is True


def test_unsorted_schedule_is_sorted_on_load() -> None:
    config = _config(light=(("09:00", "Off"), ("06:00", "On")))

    assert [e.time for e in config.light.schedule] == [dt.time(6, 0), dt.time(9, 0)]
    assert config.light_on(_at(7, 0), NOMINAL) is True


def test_schedule_starting_with_off_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="light"):
        _config(light=(("10:00", "Off"), ("12:00", "On")))


def test_fan_schedule_starting_with_off_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="fan"):
        _config(fan=(("10:00", "Off"), ("12:00", "On")))


def test_empty_schedule_is_rejected() -> None:
    config = ControlConfig.from_toml(CONFIG)
    config.light.schedule = []

    with pytest.raises(ConfigurationError):
        config.setup()


def test_odd_schedule_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="pairs"):
        _config(light=(("06:00", "On"), ("09:00", "Off"), ("12:00", "On")))


def test_unbalanced_pairs_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _config(light=(("06:00", "On"), ("07:00", "On"), ("08:00", "Off"), ("09:00", "Off")))


def test_bad_time_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _config(light=(("6 am", "On"), ("09:00", "Off")))


def test_bad_action_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _config(light=(("06:00", "Maybe"), ("09:00", "Off")))


def test_out_of_range_fan_power_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _config(power=150.0)
    with pytest.raises(ConfigurationError):
        _config(power=-5.0)


def test_inverted_thresholds_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _config(min_temp=90.0, max_temp=60.0)


def test_malformed_toml_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        ControlConfig.from_toml("[fan\npower = ")


def test_missing_section_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        ControlConfig.from_toml('[fan]\npower = 50\n')


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        ControlConfig.from_file(tmp_path / "nope.toml")


def test_from_file(tmp_path: Path) -> None:
    path = tmp_path / "grow.toml"
    path.write_text(_toml(power=40.0))

    config = ControlConfig.from_file(path)

    assert config.fan_power().as_duty_cycle() == pytest.approx(0.40)


def test_fan_power_conversion() -> None:
    assert FanPower(75).as_duty_cycle() == pytest.approx(0.75)
    assert FanPower(0).as_duty_cycle() == 0.0
    assert FanPower(100).as_duty_cycle() == 1.0
    assert FanPower(75).percent == pytest.approx(75.0)
    assert FanPower(50) == FanPower(50.0)


@pytest.mark.parametrize("value", [-0.1, 100.1, math.nan])
def test_fan_power_out_of_range(value: float) -> None:
    with pytest.raises(ConfigurationError):
        FanPower(value)


def test_fan_power_independent_of_decision() -> None:
    config = _config(power=60.0)

    assert config.fan_on(_at(12, 30), NOMINAL) is False
    assert config.fan_power().as_duty_cycle() == pytest.approx(0.60)


def test_equal_fan_powers_hash_alike() -> None:
    a = FanPower(100 / 3)
    b = FanPower(33.3333333333)

    assert a == b
    assert hash(a) == hash(b)
    assert len({FanPower(50), FanPower(50.0), FanPower(25)}) == 2
    assert FanPower(33.3) != FanPower(33.4)
