import json

import pytest

from terrarium.errors import InvalidCommand, InvalidMessageFormat, InvalidValue
from terrarium.scheduler import LIGHT_END


def payload(**kw):
    return json.dumps(kw).encode()


def test_own_messages_are_dropped(dispatcher, controller, mqtt_client):
    topic = controller.cfg.sprinkler_topic
    assert dispatcher.handle_message(topic, payload(sender="Terrarium", command=1)) is None
    assert not controller.sprinkler.is_on
    assert mqtt_client.published == []


@pytest.mark.parametrize("raw", [b'{"command": 1}', b"not json", b"[1, 2]"])
def test_malformed_messages_are_reported(dispatcher, controller, mqtt_client, raw):
    topic = controller.cfg.light_topic
    outcome = dispatcher.handle_message(topic, raw)
    assert not outcome.success
    assert isinstance(outcome.error, InvalidMessageFormat)
    [msg] = mqtt_client.messages(topic)
    assert msg["message"].startswith("Invalid Message")


def test_missing_sender_message_text(dispatcher, controller, mqtt_client):
    dispatcher.handle_message(controller.cfg.light_topic, b'{"command": 1}')
    [msg] = mqtt_client.messages()
    assert 'Key "sender" is missing' in msg["message"]


@pytest.mark.parametrize("command", [1, "1"])
def test_sprinkler_on(dispatcher, controller, mqtt_client, command):
    topic = controller.cfg.sprinkler_topic
    outcome = dispatcher.handle_message(topic, payload(sender="app", command=command))
    assert outcome.success
    assert controller.sprinkler.is_on
    assert mqtt_client.messages(topic) == [{"sender": "Terrarium", "message": "Start sprinkling"}]


def test_sprinkler_off(dispatcher, controller):
    controller.start_sprinkling()
    outcome = dispatcher.dispatch(controller.cfg.sprinkler_topic, "app", 0)
    assert outcome.message == "Stop sprinkling"
    assert not controller.sprinkler.is_on
    assert controller.sprinkler.pending is None


def test_sprinkler_rejects_out_of_range(dispatcher, controller, mqtt_client):
    topic = controller.cfg.sprinkler_topic
    outcome = dispatcher.dispatch(topic, "app", 9)
    assert not outcome.success
    assert isinstance(outcome.error, InvalidCommand)
    assert not controller.sprinkler.is_on
    assert mqtt_client.messages(topic)[0]["message"].startswith('Invalid command value "9"')


def test_sprinkler_set_times_via_minus_one(dispatcher, controller):
    controller.install_jobs()
    raw = payload(sender="app", command=-1, time=["07:00", "19:00", "22:00"])
    outcome = dispatcher.handle_message(controller.cfg.sprinkler_topic, raw)
    assert outcome.message == "Successfully set new times"
    assert controller.registry.sprinkler_job_count == 3
    assert controller.get_settings()["sprinklerTimes"] == ["07:00", "19:00", "22:00"]


def test_invalid_times_change_nothing(dispatcher, controller):
    controller.install_jobs()
    before = controller.get_settings()
    with open(controller.cfg.settings_path) as f:
        on_disk = f.read()

    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "setSprinklerTimes", ["08:00", "25:00"])

    assert not outcome.success
    assert isinstance(outcome.error, InvalidValue)
    assert controller.get_settings() == before
    assert controller.registry.sprinkler_job_count == 2
    with open(controller.cfg.settings_path) as f:
        assert f.read() == on_disk


def test_get_settings(dispatcher, controller, mqtt_client):
    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "getSettings")
    assert outcome.message == controller.get_settings()
    assert mqtt_client.messages(controller.cfg.settings_topic)[0]["message"]["lightEnd"] == "20:00"


def test_sprinkle_length_alias(dispatcher, controller):
    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "setSprinkleLengthMS", 30000)
    assert outcome.message == "Sprinkler now will sprinkle 30 seconds."
    assert controller.get_settings()["sprinkleLengthMS"] == 30000


@pytest.mark.parametrize("value", [0, -5, 1.5, "abc", True, None])
def test_sprinkle_length_rejects(dispatcher, controller, value):
    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "setSprinkleLengthMs", value)
    assert not outcome.success
    assert controller.get_settings()["sprinkleLengthMS"] == 15000


def test_set_light_end(dispatcher, controller):
    controller.install_jobs()
    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "setLightEnd", "21:15")
    assert outcome.message == "Light will turn off at 21:15"
    assert "hour='21'" in str(controller.registry.light_jobs[LIGHT_END].trigger)


def test_unknown_settings_command(dispatcher, controller):
    outcome = dispatcher.dispatch(controller.cfg.settings_topic, "app", "setMoonPhase", 3)
    assert isinstance(outcome.error, InvalidCommand)


def test_temperature_topic(dispatcher, controller, mqtt_client):
    topic = controller.cfg.temperature_inside_topic
    outcome = dispatcher.handle_message(topic, payload(sender="app"))
    assert outcome.message == 23.5
    assert mqtt_client.messages(topic) == [{"sender": "Terrarium", "message": 23.5}]


def test_light_on(dispatcher, controller, light):
    outcome = dispatcher.dispatch(controller.cfg.light_topic, "app", "1")
    assert outcome.message == "Turning light on"
    assert light.calls == [("switch", True)]


def test_light_failure_is_reported(dispatcher, controller, light, mqtt_client):
    light.fail = True
    outcome = dispatcher.dispatch(controller.cfg.light_topic, "app", 0)
    assert not outcome.success
    assert "failed" in mqtt_client.messages(controller.cfg.light_topic)[0]["message"]


def test_unknown_topic_is_ignored(dispatcher, mqtt_client):
    assert dispatcher.dispatch("terrarium/unknown", "app", 1) is None
    assert mqtt_client.published == []
