"""Pure validation helpers for inbound commands and their payloads."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

from apscheduler.triggers.cron import CronTrigger

from .errors import InvalidCommand, InvalidValue

# One or two digit hour, two digit minute, 24h clock.
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

SET_SPRINKLER_TIMES = "setSprinklerTimes"
SET_SPRINKLE_LENGTH = "setSprinkleLengthMs"
SET_LIGHT_START = "setLightStart"
SET_LIGHT_END = "setLightEnd"
GET_SETTINGS = "getSettings"

SETTINGS_COMMANDS = (
    SET_SPRINKLER_TIMES,
    SET_SPRINKLE_LENGTH,
    SET_LIGHT_START,
    SET_LIGHT_END,
    GET_SETTINGS,
)

# Wire names used by older clients.
SETTINGS_ALIASES = {
    "setSprinkleLengthMS": SET_SPRINKLE_LENGTH,
}

# Sprinkler topic command that replaces the schedule with ``value``.
SET_TIMES_COMMAND = -1


@dataclass(frozen=True)
class CronSpec:
    """A daily recurrence at ``hour:minute``."""

    hour: int
    minute: int

    @property
    def expression(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    def trigger(self, timezone=None) -> CronTrigger:
        if timezone is None:
            return CronTrigger(hour=self.hour, minute=self.minute)
        return CronTrigger(hour=self.hour, minute=self.minute, timezone=timezone)

    def __str__(self) -> str:
        return self.expression


def _invalid_time(value: Any) -> InvalidValue:
    return InvalidValue(f"Invalid time format: {value}. Please use hh:mm in 24h format")


def validate_time_of_day(value: Any) -> str:
    """Return ``value`` normalised to zero padded ``hh:mm``."""
    if not isinstance(value, str):
        raise _invalid_time(value)
    m = TIME_PATTERN.fullmatch(value)
    if not m:
        raise _invalid_time(value)
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def to_cron_expression(value: Any) -> CronSpec:
    """Map a time of day to a daily recurrence.

    Validates on its own because it is also used for bulk time lists that
    may not have been through :func:`validate_time_of_day`.
    """
    hh, mm = validate_time_of_day(value).split(":")
    return CronSpec(hour=int(hh), minute=int(mm))


def validate_time_list(value: Any) -> List[str]:
    if value is None or value == "":
        raise InvalidValue("No times found to set")
    if not isinstance(value, list):
        raise InvalidValue("Invalid time value. times have to be an array with hh:mm format values")
    return [validate_time_of_day(t) for t in value]


def validate_duration_ms(value: Any) -> int:
    """Accept a positive whole number of milliseconds."""
    # bool is an int subclass; JSON true must not pass as 1 ms.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidValue("Invalid millisecond value. Sprinkle length has to be numerical.")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidValue("Invalid millisecond value. Sprinkle length has to be a whole number.")
    if value <= 0:
        raise InvalidValue("Invalid millisecond value. Sprinkle length has to be greater than 0.")
    return int(value)


def canonical_settings_command(name: Any) -> str:
    if isinstance(name, str):
        name = SETTINGS_ALIASES.get(name, name)
    if name not in SETTINGS_COMMANDS:
        raise InvalidCommand(
            f'Invalid command value "{name}": "command" needs to be '
            + ", ".join(f'"{c}"' for c in SETTINGS_COMMANDS)
        )
    return name


def validate_settings_command(name: Any, value: Any = None) -> Any:
    """Validate the payload of a settings command and return it normalised."""
    name = canonical_settings_command(name)
    if name == SET_SPRINKLER_TIMES:
        return validate_time_list(value)
    if name == SET_SPRINKLE_LENGTH:
        if value is None:
            raise InvalidValue("No sprinkle length found to set")
        return validate_duration_ms(value)
    if name in (SET_LIGHT_START, SET_LIGHT_END):
        if value is None or value == "":
            raise InvalidValue("No time found to set")
        return validate_time_of_day(value)
    return None


def parse_switch_command(command: Any, allowed=(0, 1)) -> int:
    """Coerce an on/off command (int or decimal string) and check its range."""
    state = None
    if isinstance(command, int) and not isinstance(command, bool):
        state = command
    elif isinstance(command, str) and re.fullmatch(r"-?\d+", command.strip()):
        state = int(command.strip())
    if state not in allowed:
        raise InvalidCommand(
            f'Invalid command value "{command}": "command" needs to be 1 (on) or 0 (off)'
        )
    return state
