"""Persisted user settings.

The settings live in a flat JSON file next to the controller::

    {
      "sprinklerTimes": ["08:00", "20:00"],
      "sprinkleLengthMS": 15000,
      "lightStart": "08:00",
      "lightEnd": "20:00"
    }

:class:`SettingsStore` keeps the in-memory copy and rewrites the whole file
on every change before the change becomes visible.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import List

from .errors import InvalidValue, PersistenceFailure
from .validation import validate_duration_ms, validate_time_list, validate_time_of_day

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "sprinklerTimes": ["08:00", "20:00"],
    "sprinkleLengthMS": 15000,
    "lightStart": "08:00",
    "lightEnd": "20:00",
}


@dataclass(frozen=True)
class Settings:
    sprinkler_times: List[str] = field(default_factory=list)
    sprinkle_length_ms: int = 15000
    light_start: str = "08:00"
    light_end: str = "20:00"

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Validate a stored record, filling missing keys from the defaults."""
        merged = dict(DEFAULT_SETTINGS)
        merged.update({k: v for k, v in data.items() if k in DEFAULT_SETTINGS})
        return cls(
            sprinkler_times=validate_time_list(merged["sprinklerTimes"]),
            sprinkle_length_ms=validate_duration_ms(merged["sprinkleLengthMS"]),
            light_start=validate_time_of_day(merged["lightStart"]),
            light_end=validate_time_of_day(merged["lightEnd"]),
        )

    def to_dict(self) -> dict:
        return {
            "sprinklerTimes": list(self.sprinkler_times),
            "sprinkleLengthMS": self.sprinkle_length_ms,
            "lightStart": self.light_start,
            "lightEnd": self.light_end,
        }


class SettingsStore:
    """Owns the settings record and its JSON file."""

    def __init__(self, path: str):
        self.path = path
        self.settings = Settings()

    def load(self) -> Settings:
        """Read the file once at startup, creating it with defaults if needed."""
        if not os.path.exists(self.path):
            logger.info("No settings file at %s, writing defaults", self.path)
            self.settings = Settings.from_dict(DEFAULT_SETTINGS)
            self._write(self.settings.to_dict())
            return self.settings
        self.settings = self.read()
        logger.info("Loaded settings from %s", self.path)
        return self.settings

    def read(self) -> Settings:
        """Parse the file without writing anything; defaults if it is missing."""
        if not os.path.exists(self.path):
            return Settings.from_dict(DEFAULT_SETTINGS)
        data = self._read()
        try:
            return Settings.from_dict(data)
        except InvalidValue as e:
            raise PersistenceFailure(f"Invalid settings in {self.path}: {e}") from e

    def update(self, **changes) -> Settings:
        """Apply ``changes`` and rewrite the whole record before returning.

        The persisted blob is read again and the known fields are overlaid so
        unrelated keys someone added by hand survive.  The in-memory record
        only changes once the write succeeded.
        """
        new = replace(self.settings, **changes)
        blob = self._read() if os.path.exists(self.path) else {}
        blob.update(new.to_dict())
        self._write(blob)
        self.settings = new
        logger.info("Updated %s", self.path)
        return new

    def _read(self) -> dict:
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceFailure(f"Could not read {self.path}: expected a JSON object")
        return data

    def _write(self, data: dict) -> None:
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceFailure(f"Could not write {self.path}: {e}") from e
