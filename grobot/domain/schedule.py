from __future__ import annotations
import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import ConfigurationError


class Action(str, Enum):
    ON = "On"
    OFF = "Off"


def parse_hhmm(s: str) -> dt.time:
    try:
        return dt.datetime.strptime(s.strip(), "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid time: {s!r}, expected HH:MM") from None


class ScheduleEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: dt.time
    action: Action

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, v):
        if isinstance(v, str):
            return parse_hhmm(v)
        return v


@dataclass(frozen=True)
class TimeWindow:
    start: dt.time
    end: dt.time

    def matches(self, t: dt.time) -> bool:
        # Half-open: on at start, off at end
        return self.start <= t < self.end


def prepare(events: Sequence[ScheduleEvent], name: str) -> list[ScheduleEvent]:
    """Sort a schedule by time of day and check it pairs up as (On, Off).

    Raises ConfigurationError naming the actuator when the schedule is empty,
    has an odd number of events, or does not alternate On/Off from the start.
    """
    ordered = sorted(events, key=lambda e: e.time)
    if not ordered:
        raise ConfigurationError(f"{name} schedule must have at least one On/Off pair")
    if ordered[0].action is not Action.ON:
        raise ConfigurationError(
            f"{name} schedule must start with an On event (first is "
            f"{ordered[0].action.value} at {ordered[0].time.strftime('%H:%M')})"
        )
    if len(ordered) % 2:
        raise ConfigurationError(
            f"{name} schedule has {len(ordered)} events; On/Off events must come in pairs"
        )
    for i in range(0, len(ordered), 2):
        on, off = ordered[i], ordered[i + 1]
        if on.action is not Action.ON or off.action is not Action.OFF:
            raise ConfigurationError(
                f"{name} schedule events at {on.time.strftime('%H:%M')} and "
                f"{off.time.strftime('%H:%M')} are not an On/Off pair"
            )
    return ordered


def windows(events: Sequence[ScheduleEvent]) -> Iterator[TimeWindow]:
    # Expects a prepared (sorted, even-length) schedule
    for i in range(0, len(events) - 1, 2):
        yield TimeWindow(start=events[i].time, end=events[i + 1].time)


def scheduled_on(events: Sequence[ScheduleEvent], when: dt.datetime) -> bool:
    t = when.timetz().replace(tzinfo=None)
    return any(w.matches(t) for w in windows(events))
