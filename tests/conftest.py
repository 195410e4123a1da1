import json
import threading

import pytest
from gpiozero import Device
from gpiozero.pins.mock import MockFactory

from terrarium.config import Config
from terrarium.controller import TerrariumController
from terrarium.devices import Sprinkler
from terrarium.dispatcher import CommandDispatcher
from terrarium.errors import ActuatorTransportFailure
from terrarium.messaging import Notifier
from terrarium.scheduler import ScheduleRegistry
from terrarium.settings import SettingsStore


def sensor_blob(millidegrees, ready=True):
    status = "YES" if ready else "NO"
    return (
        f"72 01 4b 46 7f ff 0e 10 57 : crc=57 {status}\n"
        f"72 01 4b 46 7f ff 0e 10 57 t={millidegrees}\n"
    )


class FakeInfo:
    def __init__(self, rc=0):
        self.rc = rc


class FakeMqttClient:
    """Records publishes instead of talking to a broker."""

    def __init__(self):
        self.published = []
        self.rc = 0

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, json.loads(payload)))
        return FakeInfo(self.rc)

    def messages(self, topic=None):
        return [p for t, p in self.published if topic is None or t == topic]


class FakeLight:
    def __init__(self):
        self.calls = []
        self.fail = False

    def switch(self, on):
        if self.fail:
            raise ActuatorTransportFailure("Light controller at http://led failed: timeout")
        self.calls.append(("switch", on))

    def apply(self, on, color, brightness=255):
        if self.fail:
            raise ActuatorTransportFailure("Light controller at http://led failed: timeout")
        self.calls.append(("apply", on, tuple(color)))


@pytest.fixture(autouse=True)
def mock_pins():
    Device.pin_factory = MockFactory()
    yield
    Device.pin_factory.reset()


@pytest.fixture
def cfg(tmp_path):
    inside = tmp_path / "inside_w1_slave"
    outside = tmp_path / "outside_w1_slave"
    inside.write_text(sensor_blob(23500))
    outside.write_text(sensor_blob(19250))
    return Config(
        sensor_inside=str(inside),
        sensor_outside=str(outside),
        settings_path=str(tmp_path / "config.json"),
    )


@pytest.fixture
def store(cfg):
    s = SettingsStore(cfg.settings_path)
    s.load()
    return s


@pytest.fixture
def mqtt_client():
    return FakeMqttClient()


@pytest.fixture
def light():
    return FakeLight()


@pytest.fixture
def controller(cfg, store, mqtt_client, light):
    sprinkler = Sprinkler(cfg.sprinkler_pin, threading.RLock())
    ctl = TerrariumController(
        cfg, store, sprinkler, light, Notifier(mqtt_client, cfg.sender_id), ScheduleRegistry()
    )
    yield ctl
    sprinkler.close()


@pytest.fixture
def dispatcher(controller):
    return CommandDispatcher(controller)
