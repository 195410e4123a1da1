"""Flask API in front of the dispatcher."""
from __future__ import annotations

from typing import Any

from flask import Flask, Response, jsonify, request

from .controller import TerrariumController, normalize_location
from .dispatcher import CommandDispatcher, Outcome
from .errors import (
    ActuatorTransportFailure,
    InvalidCommand,
    InvalidMessageFormat,
    InvalidValue,
    PersistenceFailure,
    SensorReadFailure,
)
from .messaging import Notifier
from .validation import (
    GET_SETTINGS,
    SET_LIGHT_END,
    SET_LIGHT_START,
    SET_SPRINKLE_LENGTH,
    SET_SPRINKLER_TIMES,
    canonical_settings_command,
    validate_settings_command,
)

BRIDGE_HINT = "If nothing happens, please check MQTT for errors."
DIRECT_HINT = "The outcome was also published on {topic}."

# Settings command -> key expected in the PUT body.
BODY_KEYS = {
    SET_SPRINKLER_TIMES: "sprinklerTimes",
    SET_SPRINKLE_LENGTH: "sprinkleLengthMS",
    SET_LIGHT_START: "lightStart",
    SET_LIGHT_END: "lightEnd",
}

ERROR_STATUS = (
    ((InvalidCommand, InvalidValue, InvalidMessageFormat), 400),
    (PersistenceFailure, 500),
    (ActuatorTransportFailure, 502),
    (SensorReadFailure, 503),
)


def status_for(error: Exception) -> int:
    for kinds, status in ERROR_STATUS:
        if isinstance(error, kinds):
            return status
    return 500


def settings_value_from_body(name: str, body: Any) -> Any:
    """Pull the value for ``name`` out of a PUT body."""
    if name == SET_SPRINKLER_TIMES and isinstance(body, list):
        return body
    key = BODY_KEYS[name]
    if not isinstance(body, dict) or key not in body:
        raise InvalidValue(f'Invalid value. Body needs to have "{key}" key.')
    return body[key]


def build_app(controller: TerrariumController, dispatcher: CommandDispatcher,
              notifier: Notifier = None, mode: str = "direct") -> Flask:
    """Construct the Flask application.

    In ``direct`` mode commands run through ``dispatcher`` and the response
    carries the outcome.  In ``bridge`` mode they are only forwarded onto
    the bus with ``notifier`` and the response says whether that worked.
    """
    app = Flask(__name__)
    cfg = controller.cfg
    if notifier is None:
        notifier = controller.notifier
    app.controller = controller

    def _outcome_response(outcome: Outcome):
        hint = DIRECT_HINT.format(topic=outcome.topic)
        if outcome.success:
            return jsonify({"success": True, "message": outcome.message, "hint": hint})
        body = {"success": False, "error": outcome.message, "hint": hint}
        return jsonify(body), status_for(outcome.error)

    def _run(topic: str, sender: str, command: Any, value: Any = None):
        if mode == "bridge":
            ok = notifier.forward(topic, sender, command, value)
            return jsonify({"success": ok, "hint": BRIDGE_HINT})
        outcome = dispatcher.dispatch(topic, sender, command, value)
        if outcome is None:
            return jsonify({"success": False, "error": f'Sender "{sender}" is reserved for the controller'}), 400
        return _outcome_response(outcome)

    @app.get("/api/sprinkler/<sender>/<command>")
    def api_sprinkler(sender: str, command: str):
        return _run(cfg.sprinkler_topic, sender, command)

    @app.get("/api/light/<sender>/<command>")
    def api_light(sender: str, command: str):
        return _run(cfg.light_topic, sender, command)

    @app.get("/api/temperature/<location>")
    def api_temperature(location: str):
        try:
            location = normalize_location(location)
        except InvalidCommand:
            return jsonify({
                "success": False,
                "hint": 'invalid type attribute. Needs to be "innen" or "aussen".',
            }), 400
        try:
            celsius = controller.read_temperature(location)
        except SensorReadFailure as e:
            return jsonify({"success": False, "temperature": None, "error": str(e)}), 503
        return jsonify({"success": True, "temperature": celsius})

    @app.put("/api/settings/<sender>/<command>")
    def api_settings_update(sender: str, command: str):
        body = request.get_json(silent=True)
        try:
            name = canonical_settings_command(command)
            if name == GET_SETTINGS:
                raise InvalidCommand(f'"{GET_SETTINGS}" is read only, use GET /api/settings')
            value = validate_settings_command(name, settings_value_from_body(name, body))
        except (InvalidCommand, InvalidValue) as e:
            return jsonify({"success": False, "error": str(e)}), 400
        return _run(cfg.settings_topic, sender, name, value)

    @app.get("/api/settings")
    def api_settings():
        return jsonify(controller.get_settings())

    @app.get("/api/status")
    def api_status():
        return jsonify(controller.status())

    @app.get("/metrics")
    def metrics():
        return Response(controller.gauges.render(), content_type=controller.gauges.content_type)

    return app
