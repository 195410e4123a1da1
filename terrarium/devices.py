"""Actuators: the sprinkler relay line and the remote WLED light strip."""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import requests
from gpiozero import Device, DigitalOutputDevice

from .errors import ActuatorTransportFailure

logger = logging.getLogger(__name__)


def use_mock_pins() -> None:
    """Switch gpiozero to its mock pin factory for running off the Pi."""
    from gpiozero.pins.mock import MockFactory

    Device.pin_factory = MockFactory()


@dataclass
class PendingCycle:
    """A running sprinkle waiting for its auto-off timer."""

    duration_ms: int
    started: float = field(default_factory=time.monotonic)
    timer: Optional[threading.Timer] = None

    @property
    def remaining_ms(self) -> int:
        elapsed = (time.monotonic() - self.started) * 1000.0
        return max(0, int(self.duration_ms - elapsed))


class Sprinkler:
    """Wraps the relay's DigitalOutputDevice and its timed auto-off.

    ``lock`` is the controller's mutation lock; the auto-off timer takes it
    before touching the line.
    """

    def __init__(self, pin: int, lock: threading.RLock, active_high: bool = True):
        self.lock = lock
        self.device = DigitalOutputDevice(pin, active_high=active_high, initial_value=False)
        self.pending: Optional[PendingCycle] = None

    @property
    def is_on(self) -> bool:
        return bool(self.device.value)

    def on(self, duration_ms: int, on_expire: Optional[Callable[[], None]] = None) -> PendingCycle:
        """Open the valve and arm an auto-off after ``duration_ms``.

        The duration is captured here; later setting changes do not touch a
        cycle that is already running.  A previous cycle's timer is cancelled
        so it cannot cut this one short.
        """
        with self.lock:
            self._cancel_pending()
            self.device.on()
            cycle = PendingCycle(duration_ms)
            t = threading.Timer(duration_ms / 1000.0, self._expire, args=(cycle, on_expire))
            t.daemon = True
            # Record before starting so a very short timer can't fire unseen.
            cycle.timer = t
            self.pending = cycle
            t.start()
            return cycle

    def off(self) -> None:
        with self.lock:
            self.device.off()
            self._cancel_pending()

    def _expire(self, cycle: PendingCycle, on_expire: Optional[Callable[[], None]]) -> None:
        with self.lock:
            # Superseded while we waited for the lock.
            if self.pending is not cycle:
                return
            self.pending = None
            self.device.off()
        logger.info("Sprinkle cycle of %d ms finished", cycle.duration_ms)
        if on_expire is not None:
            on_expire()

    def _cancel_pending(self) -> None:
        cycle, self.pending = self.pending, None
        if cycle is not None and cycle.timer is not None:
            cycle.timer.cancel()

    def close(self) -> None:
        """Drive the line low and release it."""
        with self.lock:
            if self.device.closed:
                return
            self.off()
            self.device.close()


# Inside temperature (rounded °C) -> RGB colour for the light strip.
TEMPERATURE_COLORS = {
    10: (0, 0, 255),
    11: (25, 25, 229),
    12: (51, 51, 204),
    13: (76, 76, 178),
    14: (102, 102, 153),
    15: (127, 127, 127),
    16: (153, 153, 102),
    17: (178, 178, 76),
    18: (204, 204, 51),
    19: (229, 229, 25),
    20: (255, 255, 0),
    21: (255, 255, 0),
    22: (255, 241, 0),
    23: (255, 228, 0),
    24: (255, 214, 0),
    25: (255, 201, 0),
    26: (255, 187, 0),
    27: (255, 174, 0),
    28: (255, 161, 0),
    29: (255, 147, 0),
    30: (255, 134, 0),
    31: (255, 120, 0),
    32: (255, 107, 0),
    33: (255, 93, 0),
    34: (255, 80, 0),
    35: (255, 67, 0),
    36: (255, 53, 0),
    37: (255, 40, 0),
    38: (255, 26, 0),
    39: (255, 13, 0),
    40: (255, 0, 0),
}
MIN_COLOR_TEMP = min(TEMPERATURE_COLORS)
MAX_COLOR_TEMP = max(TEMPERATURE_COLORS)


def color_for_temperature(celsius: float) -> tuple:
    """Round half up and clamp into the table's 10-40 °C range."""
    degrees = int(math.floor(celsius + 0.5))
    degrees = min(MAX_COLOR_TEMP, max(MIN_COLOR_TEMP, degrees))
    return TEMPERATURE_COLORS[degrees]


def minutes_of_day(hhmm: str) -> int:
    h, m = hhmm.split(":")
    return int(h) * 60 + int(m)


def in_light_window(start: str, end: str, now: Optional[datetime] = None) -> bool:
    """True when ``start <= now < end`` by minute of day.

    A window that crosses midnight (start after end) is never active.
    """
    if now is None:
        now = datetime.now()
    current = now.hour * 60 + now.minute
    return minutes_of_day(start) <= current < minutes_of_day(end)


class LightController:
    """Posts state directives to the WLED JSON API of the light strip."""

    BRIGHTNESS = 255

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def switch(self, on: bool) -> None:
        self._post({"on": bool(on)})

    def apply(self, on: bool, color: tuple, brightness: int = BRIGHTNESS) -> None:
        self._post({"on": bool(on), "bri": brightness, "seg": [{"col": [list(color)]}]})

    def _post(self, payload: dict) -> None:
        try:
            resp = requests.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ActuatorTransportFailure(f"Light controller at {self.url} failed: {e}") from e
        logger.debug("Light directive %s accepted", payload)
