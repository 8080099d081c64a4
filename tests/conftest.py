import pytest
import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode

from ada_cli import mqtt_operations
from ada_cli.utils import logger as ada_logger
from ada_cli.utils.config_manager import BrokerConfig

USERNAME = "pg42819"
API_KEY = "aio_test_key"


class FakeMessageInfo:
    def __init__(self, mid, rc=mqtt.MQTT_ERR_SUCCESS, published=True):
        self.mid = mid
        self.rc = rc
        self._published = published
        self.wait_timeout = None

    def wait_for_publish(self, timeout=None):
        self.wait_timeout = timeout

    def is_published(self):
        return self._published


class FakeMQTTClient:
    """Stand-in for paho.mqtt.client.Client.

    Fires paho's v2 callbacks synchronously on the calling thread. Class
    attributes control how the next instances behave.
    """

    instances = []
    connack_reason = "Success"
    connect_error = None
    suback_failure = False
    publish_rc = mqtt.MQTT_ERR_SUCCESS
    publish_completes = True
    # payloads delivered on the subscribed topic right after the SUBACK
    pending_messages = []

    @classmethod
    def reset(cls):
        cls.instances = []
        cls.connack_reason = "Success"
        cls.connect_error = None
        cls.suback_failure = False
        cls.publish_rc = mqtt.MQTT_ERR_SUCCESS
        cls.publish_completes = True
        cls.pending_messages = []

    def __init__(self, callback_api_version, client_id="", clean_session=None,
                 protocol=mqtt.MQTTv311, reconnect_on_failure=True, **kwargs):
        self.callback_api_version = callback_api_version
        self.client_id = client_id
        self.clean_session = clean_session
        self.protocol = protocol
        self.reconnect_on_failure = reconnect_on_failure
        self.connect_timeout = None
        self.username = None
        self.password = None
        self.tls = False
        self.connect_args = None
        self.loop_running = False
        self.disconnect_calls = 0
        self.published = []
        self.subscriptions = []
        self._mid = 0
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self.on_publish = None
        self.on_subscribe = None
        FakeMQTTClient.instances.append(self)

    def _next_mid(self):
        self._mid += 1
        return self._mid

    def enable_logger(self, logger=None):
        pass

    def username_pw_set(self, username, password=None):
        self.username = username
        self.password = password

    def tls_set(self, *args, **kwargs):
        self.tls = True

    def connect(self, host, port=1883, keepalive=60):
        if self.connect_error is not None:
            raise self.connect_error
        self.connect_args = (host, port, keepalive)
        return mqtt.MQTT_ERR_SUCCESS

    def loop_start(self):
        self.loop_running = True
        self.on_connect(self, None, None, ReasonCode(PacketTypes.CONNACK, self.connack_reason), None)
        return mqtt.MQTT_ERR_SUCCESS

    def loop_stop(self):
        self.loop_running = False
        return mqtt.MQTT_ERR_SUCCESS

    def publish(self, topic, payload=None, qos=0, retain=False):
        mid = self._next_mid()
        self.published.append((topic, payload, qos))
        info = FakeMessageInfo(mid, self.publish_rc, self.publish_completes)
        if self.on_publish is not None and self.publish_rc == mqtt.MQTT_ERR_SUCCESS:
            self.on_publish(self, None, mid, ReasonCode(PacketTypes.PUBACK, "Success"), None)
        return info

    def subscribe(self, topic, qos=0):
        mid = self._next_mid()
        self.subscriptions.append((topic, qos))
        granted = 0x80 if self.suback_failure else qos
        self.on_subscribe(self, None, mid, [ReasonCode(PacketTypes.SUBACK, identifier=granted)], None)
        for payload in self.pending_messages:
            self.deliver(topic, payload)
        return mqtt.MQTT_ERR_SUCCESS, mid

    def deliver(self, topic, payload):
        """Simulate an incoming PUBLISH."""
        message = mqtt.MQTTMessage(mid=self._next_mid(), topic=topic.encode('utf-8'))
        message.payload = payload.encode('utf-8') if isinstance(payload, str) else payload
        self.on_message(self, None, message)

    def drop(self):
        """Simulate the broker connection dying."""
        self.on_disconnect(self, None, None, ReasonCode(PacketTypes.DISCONNECT, "Unspecified error"), None)

    def disconnect(self):
        self.disconnect_calls += 1
        if self.on_disconnect is not None:
            self.on_disconnect(self, None, None, ReasonCode(PacketTypes.DISCONNECT, "Success"), None)
        return mqtt.MQTT_ERR_SUCCESS


@pytest.fixture
def fake_mqtt(monkeypatch):
    FakeMQTTClient.reset()
    monkeypatch.setattr(mqtt_operations.mqtt, "Client", FakeMQTTClient)
    yield FakeMQTTClient
    FakeMQTTClient.reset()


@pytest.fixture
def broker_config():
    return BrokerConfig(uri="tcp://io.adafruit.com:1883", username=USERNAME, key=API_KEY,
                        connect_timeout=2, operation_timeout=2)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    if ada_logger._global_logger is not None:
        ada_logger._global_logger.cleanup()
        ada_logger._global_logger = None


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Environment for CLI runs: credentials set, empty config dir."""
    monkeypatch.setenv("AIO_KEY", API_KEY)
    monkeypatch.setenv("AIO_USERNAME", USERNAME)
    monkeypatch.delenv("AIO_BROKER", raising=False)
    config_dir = tmp_path / "ada-config"
    config_dir.mkdir()
    return config_dir
