"""MQTT transport for flushing device metrics to a gateway broker.

Each device publishes to its own topic, ``devices/<vendor>/<serial>``. A
published document is one flush batch serialized as JSON. Messages received
on a subscribed topic are queued for later inspection by the caller.
"""

import json
import logging
import queue
import threading
import uuid
from typing import Any, Optional

import paho.mqtt.client as mqtt

from handset_injector.config import TransportConfig

logger = logging.getLogger(__name__)

# CONNACK codes for refused credentials (MQTT 3.1.1 and their MQTT 5 equivalents)
AUTH_FAILURE_CODES = {4, 5, 134, 135}


class TelemetryTransport:
    """MQTT client used to deliver metric batches.

    Connection, publish and subscribe failures are logged and reported as
    ``False``; nothing here raises on a broker problem. Once connected, the
    paho network loop reconnects automatically after a dropped connection.

    Example:
        >>> transport = TelemetryTransport(TransportConfig(host="10.0.0.5"))
        >>> with transport:
        ...     transport.publish(transport.topic_for("cnnc03bp5pf2169"), batch)
    """

    def __init__(self, config: Optional[TransportConfig] = None, serial: Optional[str] = None):
        """
        Initialize the transport without connecting.

        Args:
            config: Broker configuration
            serial: Device serial for the default subscribe topic
        """
        self.config = config or TransportConfig()
        self.topic = self.topic_for(serial) if serial else None
        self.client_id = str(uuid.uuid4())

        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._connect_done = threading.Event()
        self._refusal: Any = None
        self._subscriptions: set[str] = set()
        self._inbound: "queue.SimpleQueue[bytes]" = queue.SimpleQueue()

    @property
    def broker_address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def topic_for(self, serial: str) -> str:
        """Topic a device's metrics are published on."""
        return f"devices/{self.config.vendor}/{serial}"

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
        )
        # Covers the blocking TCP connect; the CONNACK wait uses the same limit
        client.connect_timeout = self.config.connect_timeout_seconds
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or None)
        client.reconnect_delay_set(
            min_delay=self.config.reconnect_min_delay_seconds,
            max_delay=self.config.reconnect_max_delay_seconds,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    # paho callbacks, run on the network loop thread

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self._refusal = reason_code
            self._connected.clear()
        else:
            self._refusal = None
            self._connected.set()
            # subscribe()/unsubscribe() may change the set on the caller's thread
            for topic in list(self._subscriptions):
                client.subscribe(topic, qos=self.config.qos)
        self._connect_done.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        if reason_code.is_failure:
            logger.warning(
                "Lost connection to MQTT broker %s (%s); reconnecting", self.broker_address, reason_code
            )

    def _on_message(self, client, userdata, message) -> None:
        self._inbound.put(message.payload)

    # Connection lifecycle

    def connect(self) -> bool:
        """
        Connect to the broker; a no-op when already connected.

        Returns:
            True if connected (always True in dry-run mode)
        """
        if self.config.dry_run:
            return True
        if self.is_connected:
            logger.debug("Agent was already connected to MQTT broker %s", self.broker_address)
            return True
        if not self.config.host:
            logger.error("Could not find gateway address for current context")
            return False

        if self._client is None:
            self._client = self._create_client()
        self._connect_done.clear()
        self._refusal = None

        try:
            self._client.connect(
                self.config.host,
                self.config.port,
                keepalive=self.config.keepalive_seconds,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to connect to MQTT server %s: %s", self.broker_address, e)
            return False

        self._client.loop_start()
        if not self._connect_done.wait(self.config.connect_timeout_seconds):
            logger.error(
                "Failed to connect to MQTT server %s: no answer within %ss",
                self.broker_address,
                self.config.connect_timeout_seconds,
            )
            self._client.loop_stop()
            return False

        if self._refusal is not None:
            if getattr(self._refusal, "value", None) in AUTH_FAILURE_CODES:
                logger.error("Cannot authenticate to MQTT server %s: %s", self.broker_address, self._refusal)
            else:
                logger.error("Failed to connect to MQTT server %s: %s", self.broker_address, self._refusal)
            self._client.loop_stop()
            return False

        logger.debug("Connected to MQTT broker %s", self.broker_address)
        return True

    def disconnect(self) -> None:
        """
        Disconnect from the broker and stop the network loop.

        The loop is stopped after a dropped connection too; paho's background
        reconnect ends here. A no-op when there is no client.
        """
        if self._client is None:
            logger.debug("Agent was already disconnected from MQTT broker %s", self.broker_address)
            return
        if not self.is_connected:
            logger.debug("Agent was already disconnected from MQTT broker %s", self.broker_address)
        self._client.disconnect()
        self._client.loop_stop()
        self._client = None
        self._connected.clear()
        logger.debug("Disconnected from MQTT broker %s", self.broker_address)

    # Messaging

    def publish(self, topic: str, document: dict[str, Any]) -> bool:
        """
        Publish one JSON document, connecting first if needed.

        Waits for the broker acknowledgement at the configured QoS.

        Returns:
            True if the broker acknowledged the message
        """
        try:
            payload = json.dumps(document)
        except (TypeError, ValueError) as e:
            logger.error("Could not process json object: %s", e)
            return False

        if self.config.dry_run:
            logger.info("Dry run: %d bytes for topic %s not sent", len(payload), topic)
            self._log_pretty_json(document)
            return True

        if not self.is_connected and not self.connect():
            return False

        info = self._client.publish(topic, payload, qos=self.config.qos, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error("Failed to publish to %s on %s: %s", topic, self.broker_address, mqtt.error_string(info.rc))
            return False
        try:
            info.wait_for_publish(timeout=self.config.publish_timeout_seconds)
        except (RuntimeError, ValueError) as e:
            logger.error("Failed to publish to %s on %s: %s", topic, self.broker_address, e)
            return False
        if not info.is_published():
            logger.error(
                "Broker %s did not acknowledge message on %s within %ss",
                self.broker_address,
                topic,
                self.config.publish_timeout_seconds,
            )
            return False

        self._log_pretty_json(document)
        return True

    def subscribe(self, topic: Optional[str] = None) -> bool:
        """Start queueing inbound messages from ``topic`` (default: this device's topic)."""
        topic = topic or self.topic
        if not topic:
            logger.error("No topic given and no device serial configured for subscribe")
            return False
        if not self.is_connected and not self.connect():
            return False
        result, _ = self._client.subscribe(topic, qos=self.config.qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error("Failed to subscribe to '%s' on %s: %s", topic, self.broker_address, mqtt.error_string(result))
            return False
        self._subscriptions.add(topic)
        return True

    def unsubscribe(self, topic: Optional[str] = None) -> None:
        topic = topic or self.topic
        self._subscriptions.discard(topic)
        if self._client is not None and self.is_connected:
            result, _ = self._client.unsubscribe(topic)
            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.error(
                    "Failed to unsubscribe for topic '%s' from MQTT server %s: %s",
                    topic,
                    self.broker_address,
                    mqtt.error_string(result),
                )

    def drain_inbound(self) -> list[bytes]:
        """Remove and return every queued inbound payload, oldest first."""
        messages = []
        while True:
            try:
                messages.append(self._inbound.get_nowait())
            except queue.Empty:
                break
        return messages

    def _log_pretty_json(self, document: dict[str, Any]) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Metrics sent:\n%s", json.dumps(document, indent=2))

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        return False
