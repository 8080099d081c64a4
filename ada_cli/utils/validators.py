"""
Validation utilities for the ada CLI.
"""
from urllib.parse import urlparse
from .exceptions import MQTTValidationError

PLAIN_SCHEMES = ('tcp', 'mqtt')
TLS_SCHEMES = ('ssl', 'mqtts')

def validate_broker_url(broker_url: str) -> None:
    """Validate MQTT broker URL format."""
    try:
        parsed = urlparse(broker_url)
        port = parsed.port
    except ValueError as e:
        raise MQTTValidationError(f"Invalid broker URL: {str(e)}")
    if parsed.scheme not in PLAIN_SCHEMES + TLS_SCHEMES:
        raise MQTTValidationError(
            "Broker URL must start with one of: "
            + ", ".join(f"{scheme}://" for scheme in PLAIN_SCHEMES + TLS_SCHEMES))
    if not parsed.hostname:
        raise MQTTValidationError("Broker URL must include a hostname")
    if port == 0:
        raise MQTTValidationError("Broker URL port must be non-zero")

def validate_topic(topic: str) -> None:
    """Validate MQTT topic format."""
    if not topic:
        raise MQTTValidationError("Topic cannot be empty")

    # MQTT topic validation rules
    if len(topic.encode('utf-8')) > 65535:
        raise MQTTValidationError("Topic length exceeds maximum allowed (65,535 bytes)")

    if '#' in topic and topic[-1] != '#':
        raise MQTTValidationError("Wildcard '#' must be at the end of the topic")

    if topic.count('#') > 1:
        raise MQTTValidationError("Only one '#' wildcard allowed in topic")

    if topic.startswith('/'):
        raise MQTTValidationError("Topic must not start with '/', it is prefixed with the username")

    if '//' in topic:
        raise MQTTValidationError("Empty topic level (double forward slash) is not allowed")

def validate_publish_topic(topic: str) -> None:
    """Validate a topic that a message is published to."""
    validate_topic(topic)
    if '+' in topic or '#' in topic:
        raise MQTTValidationError("Wildcards '+' and '#' are only allowed when subscribing")

def validate_qos(qos: int) -> None:
    """Validate QoS level."""
    if isinstance(qos, bool) or not isinstance(qos, int) or qos not in [0, 1, 2]:
        raise MQTTValidationError("QoS must be 0, 1, or 2")

def validate_client_id(client_id: str) -> None:
    """Validate MQTT client identifier."""
    if not client_id:
        raise MQTTValidationError("Client ID cannot be empty")
    if len(client_id.encode('utf-8')) > 65535:
        raise MQTTValidationError("Client ID length exceeds maximum allowed (65,535 bytes)")

def validate_timeout(timeout: int) -> None:
    """Validate timeout value."""
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0:
        raise MQTTValidationError("Timeout must be zero or a positive integer")
