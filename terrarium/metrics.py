"""Prometheus gauges for the two temperature sensors."""
from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest


class TemperatureGauges:
    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry = None):
        # Own registry so several controllers (tests) never clash on names.
        self.registry = registry if registry is not None else CollectorRegistry()
        self.gauges = {
            "inside": Gauge("inside_temperature_celsius", "Current inside temperature in Celsius",
                            registry=self.registry),
            "outside": Gauge("outside_temperature_celsius", "Current room temperature in Celsius",
                             registry=self.registry),
        }

    def set(self, location: str, celsius: float) -> None:
        self.gauges[location].set(celsius)

    def render(self) -> bytes:
        return generate_latest(self.registry)
