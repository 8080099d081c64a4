"""
Configuration manager for the ada CLI.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError
from .validators import (
    TLS_SCHEMES,
    validate_broker_url,
    validate_client_id,
    validate_publish_topic,
    validate_qos,
    validate_timeout,
    validate_topic,
)

logger = logging.getLogger(__name__)

DEFAULT_BROKER_URI = "tcp://io.adafruit.com:1883"  # Adafruit IO broker
DEFAULT_TOPIC = "feeds/sensorfeed"
DEFAULT_QOS = 1
DEFAULT_TIMEOUT = 0  # seconds, 0 waits forever when subscribing
DEFAULT_SUBSCRIBE_CLIENT_ID = "ada-subscribe-client"
DEFAULT_PUBLISH_CLIENT_ID = "ada-publish-client"
DEFAULT_MESSAGE = "test message"

PLAIN_PORT = 1883
TLS_PORT = 8883

# Keys that must never be picked up from a file on disk
CREDENTIAL_KEYS = ('key', 'aio_key', 'password')


@dataclass(frozen=True)
class BrokerConfig:
    """Connection parameters for a single broker account."""
    uri: str
    username: str
    key: str = field(repr=False)
    connect_timeout: int = 60   # seconds to wait for the socket and the CONNACK
    keepalive: int = 60         # seconds between PINGREQs
    operation_timeout: int = 60  # seconds to wait for PUBACK/SUBACK

    def __post_init__(self):
        validate_broker_url(self.uri)
        if not self.username:
            raise ConfigurationError("Broker username cannot be empty")
        if not self.key:
            raise ConfigurationError("Broker API key cannot be empty")

    @property
    def use_tls(self) -> bool:
        return urlparse(self.uri).scheme in TLS_SCHEMES

    @property
    def host(self) -> str:
        return urlparse(self.uri).hostname

    @property
    def port(self) -> int:
        port = urlparse(self.uri).port
        if port:
            return port
        return TLS_PORT if self.use_tls else PLAIN_PORT


@dataclass
class Settings:
    """Everything the command needs to run one publish or subscribe."""
    broker: BrokerConfig
    topic: str = DEFAULT_TOPIC
    qos: int = DEFAULT_QOS
    subscribe: bool = False
    message: Optional[str] = None
    client_id: Optional[str] = None
    file_path: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT

    @property
    def effective_client_id(self) -> str:
        if self.client_id:
            return self.client_id
        return DEFAULT_SUBSCRIBE_CLIENT_ID if self.subscribe else DEFAULT_PUBLISH_CLIENT_ID


class ConfigManager:
    """Reads optional defaults from <config_dir>/config.json.

    Only non-secret values are honoured: broker, username, topic and qos.
    """

    SUPPORTED_KEYS = ('broker', 'username', 'topic', 'qos')
    STRING_KEYS = ('broker', 'username', 'topic')

    def __init__(self, config_dir: Path):
        """Initialize the configuration manager."""
        self.config_dir = Path(config_dir).expanduser()
        self.config_file = self.config_dir / 'config.json'
        self.config: Dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load configuration from file."""
        if not self.config_file.exists():
            logger.debug(f"No config file at {self.config_file}")
            return
        try:
            loaded_config = json.loads(self.config_file.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {self.config_file} is not valid JSON: {e}")
        if not isinstance(loaded_config, dict):
            raise ConfigurationError(f"Config file {self.config_file} must contain a JSON object")

        for key in CREDENTIAL_KEYS:
            if key in loaded_config:
                logger.warning(
                    f"Ignoring '{key}' in {self.config_file}: API keys are only read "
                    "from --aio-key or the AIO_KEY environment variable")
        self.config = {k: v for k, v in loaded_config.items() if k in self.SUPPORTED_KEYS}
        for key in self.STRING_KEYS:
            if key in self.config and not isinstance(self.config[key], str):
                raise ConfigurationError(
                    f"'{key}' in {self.config_file} must be a string, got {self.config[key]!r}")
        logger.debug(f"Loaded config from {self.config_file}: {sorted(self.config)}")

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def get_broker(self) -> str:
        """Get the configured MQTT broker URI."""
        return self.config.get('broker', DEFAULT_BROKER_URI)


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_settings(config_manager: ConfigManager, *, topic: Optional[str] = None,
                     qos: Optional[int] = None, subscribe: bool = False,
                     message: Optional[str] = None, client_id: Optional[str] = None,
                     file_path: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT,
                     username: Optional[str] = None, key: Optional[str] = None,
                     broker: Optional[str] = None) -> Settings:
    """Merge explicit values (flags or env vars) over the config file and defaults.

    Raises:
        ConfigurationError: when no API key or username can be found, or a
            value fails validation.
    """
    if not key:
        raise ConfigurationError(
            "Cannot continue without an Adafruit.IO API Key. "
            "Pass one with --aio-key or set the env var AIO_KEY")

    username = _first(username, config_manager.get('username'))
    if not username:
        raise ConfigurationError(
            "Cannot continue without an Adafruit.IO username. "
            "Pass one with --aio-user, set the env var AIO_USERNAME or add 'username' to "
            f"{config_manager.config_file}")

    broker_config = BrokerConfig(
        uri=_first(broker, config_manager.get_broker()),
        username=username,
        key=key,
    )

    topic = _first(topic, config_manager.get('topic'), DEFAULT_TOPIC)
    qos = _first(qos, config_manager.get('qos'), DEFAULT_QOS)
    if subscribe:
        validate_topic(topic)
    else:
        validate_publish_topic(topic)
    validate_qos(qos)
    validate_timeout(timeout)
    if client_id is not None:
        validate_client_id(client_id)

    return Settings(
        broker=broker_config,
        topic=topic,
        qos=qos,
        subscribe=subscribe,
        message=message,
        client_id=client_id,
        file_path=file_path,
        timeout=timeout,
    )
