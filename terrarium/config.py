"""Runtime configuration.

Every value has a default suitable for the terrarium Pi and can be
overridden through an environment variable.  Command line flags given to
``terrarium run`` take precedence over both.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

# field name -> environment variable
ENV_VARS = {
    "sender_id": "TERRARIUM_SENDER",
    "mqtt_host": "TERRARIUM_MQTT_HOST",
    "mqtt_port": "TERRARIUM_MQTT_PORT",
    "sprinkler_topic": "TERRARIUM_SPRINKLER_TOPIC",
    "light_topic": "TERRARIUM_LIGHT_TOPIC",
    "temperature_inside_topic": "TERRARIUM_TEMPERATURE_INSIDE_TOPIC",
    "temperature_outside_topic": "TERRARIUM_TEMPERATURE_OUTSIDE_TOPIC",
    "settings_topic": "TERRARIUM_SETTINGS_TOPIC",
    "sensor_inside": "TERRARIUM_SENSOR_INSIDE",
    "sensor_outside": "TERRARIUM_SENSOR_OUTSIDE",
    "light_url": "TERRARIUM_LIGHT_URL",
    "light_timeout": "TERRARIUM_LIGHT_TIMEOUT",
    "sprinkler_pin": "TERRARIUM_SPRINKLER_PIN",
    "mock_gpio": "TERRARIUM_MOCK_GPIO",
    "settings_path": "TERRARIUM_SETTINGS",
    "http_host": "TERRARIUM_HTTP_HOST",
    "http_port": "TERRARIUM_HTTP_PORT",
    "http_mode": "TERRARIUM_HTTP_MODE",
    "log_level": "TERRARIUM_LOG_LEVEL",
}

HTTP_MODES = ("direct", "bridge")


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    # Tag put on every message we publish so our own echoes can be ignored.
    sender_id: str = "Terrarium"
    mqtt_host: str = "192.168.0.25"
    mqtt_port: int = 1883
    sprinkler_topic: str = "terrarium/regenanlage"
    light_topic: str = "terrarium/licht"
    temperature_inside_topic: str = "terrarium/temperatur/innen"
    temperature_outside_topic: str = "terrarium/temperatur/außen"
    settings_topic: str = "terrarium/settings"
    sensor_inside: str = "/sys/bus/w1/devices/28-357f541f64ff/w1_slave"
    sensor_outside: str = "/sys/bus/w1/devices/28-e978541f64ff/w1_slave"
    light_url: str = "http://terrariumled.local/json/state"
    light_timeout: float = 5.0
    sprinkler_pin: int = 4
    mock_gpio: bool = False
    settings_path: str = "config.json"
    http_host: str = "0.0.0.0"
    http_port: int = 17000
    http_mode: str = "direct"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a config from defaults overlaid with environment variables."""
        if environ is None:
            environ = os.environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_VARS[f.name])
            if raw is None or raw == "":
                continue
            try:
                if f.type in ("int", int):
                    values[f.name] = int(raw)
                elif f.type in ("float", float):
                    values[f.name] = float(raw)
                elif f.type in ("bool", bool):
                    values[f.name] = _as_bool(raw)
                else:
                    values[f.name] = raw
            except ValueError:
                raise ValueError(f"{ENV_VARS[f.name]} must be a number, got {raw!r}") from None
        cfg = cls(**values)
        if cfg.http_mode not in HTTP_MODES:
            raise ValueError(f"{ENV_VARS['http_mode']} must be one of {', '.join(HTTP_MODES)}")
        return cfg

    @property
    def temperature_topics(self) -> dict:
        """Map each temperature topic to the sensor location it serves."""
        return {
            self.temperature_inside_topic: "inside",
            self.temperature_outside_topic: "outside",
        }

    @property
    def subscriptions(self) -> list:
        return [
            self.sprinkler_topic,
            self.light_topic,
            self.temperature_inside_topic,
            self.temperature_outside_topic,
            self.settings_topic,
        ]
