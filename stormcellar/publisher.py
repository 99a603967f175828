"""MQTT publishing of the resolved condition code."""
from __future__ import annotations

import datetime as dt
import json
import threading
from typing import Any, Optional, Protocol

import paho.mqtt.client as mqtt

from stormcellar.errors import PublishError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="publisher")


class MessagePublisher(Protocol):
    """Anything that can deliver a payload to a topic."""

    def publish(self, topic: str, payload: Any) -> None:
        """Deliver `payload` to `topic`, raising PublishError on failure."""
        ...


def iso_utc(moment: dt.datetime) -> str:
    """Format as UTC ISO-8601 with millisecond precision and a Z suffix."""
    utc = moment.astimezone(dt.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_message(code: int, timezone_label: str, now: dt.datetime) -> dict:
    """Message body published for a resolved condition code."""
    return {
        "weather_id": code,
        "timestamp": iso_utc(now),
        "timezone": timezone_label,
    }


class MqttPublisher(MessagePublisher):
    """
    Long-lived paho-mqtt connection shared by every publish.

    connect() starts the client's network loop, so a broker that is down at
    startup or drops later is reconnected by paho itself. Messages are
    always published with the retain flag so new subscribers get the last
    condition immediately.
    """

    def __init__(
        self,
        host: str,
        port: int = 1883,
        *,
        keepalive: int = 60,
        qos: int = 0,
        client_id: str = "",
        publish_timeout: float = 10.0,
        client: Optional[mqtt.Client] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.qos = qos
        self.publish_timeout = publish_timeout
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self._connected = threading.Event()
        self._started = False

    @property
    def broker_url(self) -> str:
        return f"mqtt://{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def connect(self, wait_seconds: float = 2.0) -> bool:
        """Start connecting and wait up to `wait_seconds` for the broker to accept.

        Returns whether the connection is up; a slow broker is not an error.
        """
        logger.info(f"Connecting to MQTT broker: {self.broker_url}")
        self.client.connect_async(self.host, self.port, self.keepalive)
        self.client.loop_start()
        self._started = True
        if not self._connected.wait(timeout=wait_seconds):
            logger.warning(f"MQTT broker not connected after {wait_seconds}s; paho will keep retrying")
            return False
        return True

    def publish(self, topic: str, payload: Any) -> None:
        """Publish retained and wait for the client to hand the message off."""
        body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        try:
            info = self.client.publish(topic, body, qos=self.qos, retain=True)
        except (ValueError, OSError) as exc:
            raise PublishError(f"Failed to publish MQTT message: {exc}") from exc

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"Failed to publish MQTT message: {mqtt.error_string(info.rc)}")

        try:
            info.wait_for_publish(timeout=self.publish_timeout)
        except (ValueError, RuntimeError) as exc:
            raise PublishError(f"Failed to publish MQTT message: {exc}") from exc
        if not info.is_published():
            raise PublishError(f"MQTT message not delivered within {self.publish_timeout}s")
        logger.info(f"Published {body} to {topic}")

    def close(self) -> None:
        """Disconnect and stop the network loop. Safe to call more than once."""
        if not self._started:
            return
        self._started = False
        try:
            self.client.disconnect()
        finally:
            self.client.loop_stop()
        self._connected.clear()
        logger.info("MQTT connection closed")

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error(f"MQTT connection error: {reason_code}")
            return
        self._connected.set()
        logger.info("Connected to MQTT broker")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected.clear()
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")
