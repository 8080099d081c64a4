"""
Custom exceptions for the ada CLI.
"""

class AdaError(Exception):
    """Base exception for ada CLI errors."""
    pass

class ConfigurationError(AdaError):
    """Exception raised when the command cannot be configured (e.g. no API key)."""
    pass

class MQTTValidationError(ConfigurationError):
    """Exception raised for validation errors."""
    pass

class MQTTConnectionError(AdaError):
    """Exception raised when the broker rejects or drops an operation.

    Carries the paho/broker reason code alongside the message.
    """

    def __init__(self, reason_code: int, message: str):
        super().__init__(message)
        self.reason_code = int(reason_code)
        self.message = message

    def __str__(self):
        return f"{self.message} (reason code {self.reason_code})"

class ProgrammingError(AdaError):
    """Exception raised when a session is used outside its connected lifetime."""
    pass
