"""MQTT plumbing: the outbound notifier and the inbound subscription loop."""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class Notifier:
    """Publishes tagged responses and forwarded commands.

    Every payload carries the controller's sender id so the controller can
    recognise and drop its own messages when the broker echoes them back.
    """

    def __init__(self, client, sender_id: str):
        self.client = client
        self.sender_id = sender_id

    def publish_response(self, topic: str, message: Any) -> bool:
        payload = json.dumps({"sender": self.sender_id, "message": message})
        return self._publish(topic, payload, "Answer")

    def forward(self, topic: str, sender: str, command: Any, value: Any = None) -> bool:
        """Relay a command onto the bus on behalf of ``sender``."""
        payload = json.dumps({"sender": sender, "command": command, "value": value})
        return self._publish(topic, payload, "Forward")

    def _publish(self, topic: str, payload: str, kind: str) -> bool:
        try:
            info = self.client.publish(topic, payload, qos=0, retain=False)
        except (OSError, ValueError) as e:
            logger.error("%s could not be published on %s: %s", kind, topic, e)
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error("%s could not be published on %s: %s", kind, topic, mqtt.error_string(info.rc))
            return False
        logger.debug("%s published on %s: %s", kind, topic, payload)
        return True


def create_client(client_id: str = "") -> mqtt.Client:
    return mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)


class MqttBus:
    """Subscribes to the command topics and feeds messages to ``handler``."""

    def __init__(self, client, host: str, port: int, topics: Iterable[str],
                 handler: Optional[Callable[[str, bytes], None]] = None):
        self.client = client
        self.host = host
        self.port = port
        self.topics = list(topics)
        self.handler = handler
        client.on_connect = self.on_connect
        client.on_message = self.on_message

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
            return
        logger.info("MQTT client connected to %s:%d", self.host, self.port)
        for topic in self.topics:
            result, _mid = client.subscribe(topic)
            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.error("Could not subscribe to %s: %s", topic, mqtt.error_string(result))
            else:
                logger.info("Topic subscribed: %s", topic)

    def on_message(self, client, userdata, msg):
        if self.handler is None:
            return
        try:
            self.handler(msg.topic, msg.payload)
        except Exception:
            # An escaping exception would stop paho's network loop.
            logger.exception("Unhandled error while processing message on %s", msg.topic)

    def start(self) -> None:
        # Connects in the network thread and keeps retrying while the broker
        # is unreachable.
        self.client.connect_async(self.host, self.port, keepalive=60)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
