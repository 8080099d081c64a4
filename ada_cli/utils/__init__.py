"""
Utility functions for the ada CLI.
"""
from .config_manager import BrokerConfig, ConfigManager, Settings, resolve_settings
from .exceptions import (
    AdaError,
    ConfigurationError,
    MQTTConnectionError,
    MQTTValidationError,
    ProgrammingError,
)

__all__ = [
    'BrokerConfig',
    'ConfigManager',
    'Settings',
    'resolve_settings',
    'AdaError',
    'ConfigurationError',
    'MQTTConnectionError',
    'MQTTValidationError',
    'ProgrammingError',
]
