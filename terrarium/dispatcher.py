"""Routes normalised ``(topic, sender, command, value)`` commands to handlers.

Both the MQTT subscription and the HTTP routes end up in
:meth:`CommandDispatcher.dispatch`.  Expected inbound payloads::

    sprinkler topic:     {"sender": "app", "command": 1 | 0}
                         {"sender": "app", "command": -1, "value": ["08:00", "20:00"]}
    light topic:         {"sender": "app", "command": 1 | 0}
    temperature topics:  {"sender": "app"}
    settings topic:      {"sender": "app", "command": "setLightStart", "value": "07:30"}
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .controller import TerrariumController
from .errors import InvalidMessageFormat, TerrariumError
from .validation import (
    GET_SETTINGS,
    SET_LIGHT_END,
    SET_LIGHT_START,
    SET_SPRINKLE_LENGTH,
    SET_SPRINKLER_TIMES,
    SET_TIMES_COMMAND,
    canonical_settings_command,
    parse_switch_command,
    validate_settings_command,
)

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    topic: str
    success: bool
    message: Any
    error: Optional[TerrariumError] = None


def parse_message(payload: Any) -> dict:
    """Decode an inbound bus payload and check it names a sender."""
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    try:
        obj = json.loads(payload)
    except ValueError as e:
        raise InvalidMessageFormat(f'Invalid Message "{payload}": {e}') from e
    if not isinstance(obj, dict):
        raise InvalidMessageFormat(f'Invalid Message "{payload}": expected a JSON object')
    if "sender" not in obj:
        raise InvalidMessageFormat(f'Invalid Message "{payload}": Key "sender" is missing')
    return obj


class CommandDispatcher:
    def __init__(self, controller: TerrariumController):
        self.controller = controller
        self.cfg = controller.cfg
        self.routes = {
            self.cfg.sprinkler_topic: self.handle_sprinkler,
            self.cfg.light_topic: self.handle_light,
            self.cfg.settings_topic: self.handle_settings,
        }
        for topic in self.cfg.temperature_topics:
            self.routes[topic] = self.handle_temperature

    def is_own_message(self, sender: Any) -> bool:
        return sender == self.cfg.sender_id

    def handle_message(self, topic: str, payload: Any) -> Optional[Outcome]:
        """Entry point for messages received from the bus."""
        try:
            msg = parse_message(payload)
        except InvalidMessageFormat as e:
            self.controller.notify(topic, str(e), success=False)
            return Outcome(topic, False, str(e), e)
        # Older clients sent schedule lists under "time".
        value = msg.get("value", msg.get("time"))
        return self.dispatch(topic, msg["sender"], msg.get("command"), value)

    def dispatch(self, topic: str, sender: Any, command: Any, value: Any = None,
                 publish: bool = True) -> Optional[Outcome]:
        """Run one command and publish its outcome on ``topic``.

        Returns None when the command was not executed: our own echoed
        messages and topics nobody handles.
        """
        if self.is_own_message(sender):
            logger.debug("Ignoring own message on %s", topic)
            return None
        handler = self.routes.get(topic)
        if handler is None:
            logger.warning("No handler for topic %s", topic)
            return None
        try:
            outcome = Outcome(topic, True, handler(topic, command, value))
        except TerrariumError as e:
            outcome = Outcome(topic, False, str(e), e)
        if publish:
            self.controller.notify(topic, outcome.message, outcome.success)
        return outcome

    # ----- handlers -----

    def handle_sprinkler(self, topic: str, command: Any, value: Any) -> Any:
        state = parse_switch_command(command, allowed=(SET_TIMES_COMMAND, 0, 1))
        if state == SET_TIMES_COMMAND:
            return self.controller.set_sprinkler_times(value)
        if state == 1:
            return self.controller.start_sprinkling()
        return self.controller.stop_sprinkling()

    def handle_light(self, topic: str, command: Any, value: Any) -> Any:
        return self.controller.switch_light(parse_switch_command(command) == 1)

    def handle_temperature(self, topic: str, command: Any, value: Any) -> Any:
        return self.controller.read_temperature(self.cfg.temperature_topics[topic])

    def handle_settings(self, topic: str, command: Any, value: Any) -> Any:
        # Validate the whole payload before anything is touched.
        name = canonical_settings_command(command)
        value = validate_settings_command(name, value)
        if name == SET_SPRINKLER_TIMES:
            return self.controller.set_sprinkler_times(value)
        if name == SET_SPRINKLE_LENGTH:
            return self.controller.set_sprinkle_length(value)
        if name in (SET_LIGHT_START, SET_LIGHT_END):
            return self.controller.set_light_time(name, value)
        if name == GET_SETTINGS:
            return self.controller.get_settings()
