"""The terrarium controller: shared device state and every operation on it.

The controller owns the settings store, the schedule registry, the relay
and the light.  All mutations run under ``self.lock`` (the relay's lock) so
command handlers, scheduled jobs and the sprinkler's auto-off timer never
interleave.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from . import scheduler as jobs
from .config import Config
from .devices import LightController, Sprinkler, color_for_temperature, in_light_window
from .errors import InvalidCommand, SensorReadFailure, TerrariumError
from .messaging import Notifier
from .metrics import TemperatureGauges
from .sensors import read_temperature
from .settings import SettingsStore
from .validation import (
    SET_LIGHT_END,
    SET_LIGHT_START,
    validate_duration_ms,
    validate_time_list,
    validate_time_of_day,
)

logger = logging.getLogger(__name__)

COLOR_UPDATE_MINUTES = 5
TEMPERATURE_POLL_MINUTES = 3

LOCATIONS = {
    "inside": "inside",
    "innen": "inside",
    "outside": "outside",
    "aussen": "outside",
    "außen": "outside",
}

START_SPRINKLING = "Start sprinkling"
STOP_SPRINKLING = "Stop sprinkling"


def normalize_location(location: Any) -> str:
    try:
        return LOCATIONS[str(location).lower()]
    except KeyError:
        raise InvalidCommand(
            f'Invalid location "{location}". Needs to be "innen" (inside) or "aussen" (outside).'
        ) from None


class TerrariumController:
    def __init__(
        self,
        cfg: Config,
        store: SettingsStore,
        sprinkler: Sprinkler,
        light: LightController,
        notifier: Notifier,
        registry: Optional[jobs.ScheduleRegistry] = None,
        gauges: Optional[TemperatureGauges] = None,
    ):
        self.cfg = cfg
        self.store = store
        self.sprinkler = sprinkler
        self.light = light
        self.notifier = notifier
        self.registry = registry if registry is not None else jobs.ScheduleRegistry()
        self.gauges = gauges if gauges is not None else TemperatureGauges()
        self.lock = sprinkler.lock
        self.sensor_paths = {"inside": cfg.sensor_inside, "outside": cfg.sensor_outside}
        self.clock: Callable[[], datetime] = datetime.now

    # ----- lifecycle -----

    def install_jobs(self) -> None:
        """Build the schedule registry from the loaded settings."""
        with self.lock:
            s = self.store.settings
            self.registry.replace_sprinkler_jobs(s.sprinkler_times, self.run_scheduled_sprinkle)
            self.registry.replace_light_job(jobs.LIGHT_START, s.light_start, self.run_scheduled_light, args=(True,))
            self.registry.replace_light_job(jobs.LIGHT_END, s.light_end, self.run_scheduled_light, args=(False,))
            self.registry.install_periodic(jobs.COLOR_UPDATE, COLOR_UPDATE_MINUTES, self.run_color_update)
            self.registry.install_periodic(jobs.TEMPERATURE_POLL, TEMPERATURE_POLL_MINUTES, self.poll_temperatures)

    def start(self) -> None:
        self.install_jobs()
        self.registry.start()
        # Bring the light and the gauges up to date without waiting for the
        # first periodic tick.
        self.run_color_update()
        self.poll_temperatures()
        logger.info("Terrarium controller started")

    def shutdown(self) -> None:
        self.registry.shutdown()
        self.sprinkler.close()
        logger.info("Terrarium controller stopped, relay released")

    def notify(self, topic: str, message: Any, success: bool = True) -> bool:
        if success:
            logger.info("[%s] %s", topic, message)
        else:
            logger.error("[%s] %s", topic, message)
        return self.notifier.publish_response(topic, message)

    # ----- sprinkler -----

    def start_sprinkling(self) -> str:
        with self.lock:
            duration = self.store.settings.sprinkle_length_ms
            self.sprinkler.on(duration, on_expire=self._sprinkle_finished)
        return START_SPRINKLING

    def stop_sprinkling(self) -> str:
        self.sprinkler.off()
        return STOP_SPRINKLING

    def _sprinkle_finished(self) -> None:
        self.notify(self.cfg.sprinkler_topic, STOP_SPRINKLING)

    def run_scheduled_sprinkle(self) -> None:
        self.notify(self.cfg.sprinkler_topic, self.start_sprinkling())

    # ----- light -----

    def switch_light(self, on: bool) -> str:
        with self.lock:
            self.light.switch(on)
        return "Turning light on" if on else "Turning light off"

    def run_scheduled_light(self, on: bool) -> None:
        # A failed firing is reported; the job stays armed for tomorrow.
        try:
            msg = self.switch_light(on)
        except TerrariumError as e:
            self.notify(self.cfg.light_topic, str(e), success=False)
            return
        self.notify(self.cfg.light_topic, msg)

    def update_light_color(self) -> dict:
        """Colour the light by inside temperature and apply the light window."""
        celsius = self.read_temperature("inside")
        with self.lock:
            s = self.store.settings
            on = in_light_window(s.light_start, s.light_end, self.clock())
            color = color_for_temperature(celsius)
            self.light.apply(on, color)
        logger.info("Light %s, colour %s for %.1f °C", "on" if on else "off", color, celsius)
        return {"on": on, "color": list(color), "temperature": celsius}

    def run_color_update(self) -> None:
        try:
            self.update_light_color()
        except TerrariumError as e:
            self.notify(self.cfg.light_topic, str(e), success=False)

    # ----- temperature -----

    def read_temperature(self, location: str) -> float:
        return read_temperature(self.sensor_paths[normalize_location(location)])

    def temperature_topic(self, location: str) -> str:
        if normalize_location(location) == "inside":
            return self.cfg.temperature_inside_topic
        return self.cfg.temperature_outside_topic

    def poll_temperatures(self) -> None:
        """Refresh both gauges; a failed sensor is reported and skipped."""
        for location in ("inside", "outside"):
            try:
                celsius = self.read_temperature(location)
            except SensorReadFailure as e:
                self.notify(self.temperature_topic(location), str(e), success=False)
                continue
            self.gauges.set(location, celsius)
            logger.debug("%s temperature %.3f °C", location, celsius)

    # ----- settings -----

    def get_settings(self) -> dict:
        with self.lock:
            return self.store.settings.to_dict()

    def set_sprinkler_times(self, times: Any) -> str:
        times = validate_time_list(times)
        with self.lock:
            self.store.update(sprinkler_times=times)
            self.registry.replace_sprinkler_jobs(times, self.run_scheduled_sprinkle)
        return "Successfully set new times"

    def set_sprinkle_length(self, length_ms: Any) -> str:
        length_ms = validate_duration_ms(length_ms)
        with self.lock:
            self.store.update(sprinkle_length_ms=length_ms)
        return f"Sprinkler now will sprinkle {length_ms / 1000:g} seconds."

    def set_light_time(self, command: str, hhmm: Any) -> str:
        hhmm = validate_time_of_day(hhmm)
        with self.lock:
            if command == SET_LIGHT_START:
                self.store.update(light_start=hhmm)
                self.registry.replace_light_job(jobs.LIGHT_START, hhmm, self.run_scheduled_light, args=(True,))
                return f"Light will turn on at {hhmm}"
            if command == SET_LIGHT_END:
                self.store.update(light_end=hhmm)
                self.registry.replace_light_job(jobs.LIGHT_END, hhmm, self.run_scheduled_light, args=(False,))
                return f"Light will turn off at {hhmm}"
        raise InvalidCommand(f'Invalid light time command "{command}"')

    def status(self) -> dict:
        with self.lock:
            pending = self.sprinkler.pending
            return {
                "settings": self.store.settings.to_dict(),
                "sprinkler_on": self.sprinkler.is_on,
                "pending_cycle": {
                    "duration_ms": pending.duration_ms,
                    "remaining_ms": pending.remaining_ms,
                } if pending else None,
                "jobs": self.registry.describe(),
                "server_time": self.clock().strftime("%Y-%m-%d %H:%M:%S"),
            }
