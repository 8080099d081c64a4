"""
MQTT operations for an Adafruit IO feed.
"""
import logging
import threading
from typing import Optional

import click
import paho.mqtt.client as mqtt

from .core.callbacks import MessageCallback
from .utils.config_manager import BrokerConfig
from .utils.exceptions import MQTTConnectionError, ProgrammingError
from .utils.validators import validate_client_id, validate_publish_topic, validate_qos

logger = logging.getLogger("ada_cli.mqtt")


class AdafruitSession:
    """Wrapper around a paho MQTT client for one Adafruit account.

    A session is created unconnected, connected once with connect(), used for
    any number of publish/subscribe calls and released with close(). It is a
    context manager so close() runs on every exit path.
    """

    def __init__(self, config: BrokerConfig):
        self.config = config
        self.client_id: Optional[str] = None
        self._client: Optional[mqtt.Client] = None
        self._connack = None
        self._connack_event = threading.Event()
        self._suback_codes = None
        self._suback_event = threading.Event()
        self._cancelled = threading.Event()
        self._callback: Optional[MessageCallback] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()
        return False

    @property
    def connected(self) -> bool:
        return self._client is not None

    def full_topic(self, topic: str) -> str:
        """Prefix the topic with the account namespace."""
        return f"{self.config.username}/{topic}"

    def connect(self, client_id: str) -> "AdafruitSession":
        """Connect to the broker and wait for its CONNACK.

        Raises:
            MQTTConnectionError: if the socket cannot be opened, the broker
                refuses the connection or no CONNACK arrives in time.
        """
        if self._client is not None:
            raise ProgrammingError(f"Session is already connected as {self.client_id}")
        validate_client_id(client_id)

        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311,
            reconnect_on_failure=False,
        )
        client.connect_timeout = self.config.connect_timeout
        client.username_pw_set(self.config.username, self.config.key)
        if self.config.use_tls:
            client.tls_set()
        if logger.isEnabledFor(logging.DEBUG):
            client.enable_logger(logger)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect

        self._connack = None
        self._connack_event.clear()
        logger.info(f"Connecting to broker: {self.config.uri} with client id: {client_id}")
        try:
            client.connect(self.config.host, self.config.port, keepalive=self.config.keepalive)
        except OSError as e:
            raise MQTTConnectionError(mqtt.MQTT_ERR_NO_CONN, f"Failed to connect: {str(e)}") from e
        client.loop_start()

        if not self._connack_event.wait(self.config.connect_timeout):
            self._abandon(client)
            raise MQTTConnectionError(
                mqtt.MQTT_ERR_NO_CONN,
                f"No CONNACK from {self.config.uri} within {self.config.connect_timeout} seconds")
        if self._connack.is_failure:
            self._abandon(client)
            raise MQTTConnectionError(self._connack.value, f"Connection refused: {self._connack}")

        self._client = client
        self.client_id = client_id
        logger.info("Successfully connected to Adafruit.io via MQTT")
        return self

    def publish(self, topic: str, content: str, qos: int):
        """Publish one message and wait until paho reports it sent.

        For QoS 0 that means written to the socket; for QoS 1/2 acknowledged
        by the broker.
        """
        validate_publish_topic(topic)
        validate_qos(qos)
        client = self._get_client()
        full_topic = self.full_topic(topic)
        logger.info(f"Publishing message '{content}' to topic '{full_topic}' with qos {qos}")

        info = client.publish(full_topic, content.encode('utf-8'), qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(info.rc, f"Publish failed: {mqtt.error_string(info.rc)}")
        try:
            info.wait_for_publish(timeout=self.config.operation_timeout)
        except (RuntimeError, ValueError) as e:
            raise MQTTConnectionError(info.rc or mqtt.MQTT_ERR_NO_CONN,
                                      f"Publish failed: {str(e)}") from e
        if not info.is_published():
            raise MQTTConnectionError(
                mqtt.MQTT_ERR_NO_CONN,
                f"Publish to '{full_topic}' not completed within {self.config.operation_timeout} seconds")
        click.echo("Message published")

    def subscribe(self, topic: str, callback: MessageCallback, qos: int, wait: int):
        """Subscribe, then block the calling thread while messages arrive.

        Args:
            topic: Topic below the account namespace
            callback: Receives the events raised by the network thread
            qos: Requested QoS for the subscription
            wait: Seconds to block, 0 blocks until cancel() is called or the
                connection is lost
        """
        validate_qos(qos)
        client = self._get_client()
        full_topic = self.full_topic(topic)
        logger.info(f"Subscribing to topic '{full_topic}' with qos {qos}")

        self._cancelled.clear()
        self._callback = callback
        client.on_message = self._on_message
        client.on_publish = self._on_publish
        client.on_subscribe = self._on_subscribe

        self._suback_codes = None
        self._suback_event.clear()
        result, _mid = client.subscribe(full_topic, qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(result, f"Subscribe failed: {mqtt.error_string(result)}")
        if not self._suback_event.wait(self.config.operation_timeout):
            raise MQTTConnectionError(
                mqtt.MQTT_ERR_NO_CONN,
                f"No SUBACK for '{full_topic}' within {self.config.operation_timeout} seconds")
        for code in self._suback_codes:
            if code.is_failure:
                raise MQTTConnectionError(code.value, f"Subscription to '{full_topic}' refused: {code}")

        wait_time = "indefinitely" if wait == 0 else f"for {wait} seconds"
        logger.info(f"Subscribed to topic '{full_topic}' and waiting for messages {wait_time}")
        if wait == 0:
            self._cancelled.wait()
        else:
            self._cancelled.wait(wait)

    def cancel(self):
        """Wake a thread blocked in subscribe(). Safe to call from signal handlers.

        The next subscribe() starts a fresh wait.
        """
        self._cancelled.set()

    def close(self):
        """Disconnect if connected. Calling it again, or before connect(), does nothing."""
        if self._client is None:
            return
        client, self._client = self._client, None
        rc = client.disconnect()
        if rc != mqtt.MQTT_ERR_SUCCESS:
            logger.debug(f"Disconnect returned {mqtt.error_string(rc)}")
        client.loop_stop()
        logger.info(f"Disconnected from the Adafruit broker: {self.client_id}")

    def _abandon(self, client: mqtt.Client):
        """Release a client whose connect attempt failed."""
        rc = client.disconnect()
        if rc != mqtt.MQTT_ERR_SUCCESS:
            logger.debug(f"Disconnect after failed connect returned {mqtt.error_string(rc)}")
        client.loop_stop()

    def _get_client(self) -> mqtt.Client:
        if self._client is None:
            raise ProgrammingError("Attempted to use the Adafruit session before connecting.")
        return self._client

    # paho callbacks, run on the network thread

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        self._connack = reason_code
        self._connack_event.set()

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        self._suback_codes = list(reason_code_list)
        self._suback_event.set()

    def _on_message(self, client, userdata, message):
        if self._callback is not None:
            self._callback.message_arrived(message.topic, message)

    def _on_publish(self, client, userdata, mid, reason_code, properties):
        if self._callback is not None:
            self._callback.delivery_complete(mid)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if not reason_code.is_failure:
            logger.debug("Broker connection closed")
            return
        logger.warning(f"Connection to {self.config.uri} lost: {reason_code}")
        if not self._connack_event.is_set():
            # Dropped before the CONNACK, connect() is still waiting for it
            self._connack = reason_code
            self._connack_event.set()
            return
        if self._callback is not None:
            self._callback.connection_lost(
                MQTTConnectionError(reason_code.value, f"Connection lost: {reason_code}"))
        self._cancelled.set()
