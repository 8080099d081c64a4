"""
Logging system for the ada CLI.

This module provides:
- Console logging on stderr so stdout stays free for subscribed messages
- Optional file logging with rotation
- Crash logging for unexpected failures
- Structured reporting of MQTT failures (reason code + message)
"""

import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from typing import Optional

from .exceptions import MQTTConnectionError

class AdaLogger:
    """Logging setup for the ada CLI."""

    def __init__(self, log_level: str = "INFO", log_file: Optional[str] = None):
        """
        Initialize the logging system.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional path of a rotating log file
        """
        self.log_level = getattr(logging, log_level.upper())
        self.log_file = Path(log_file).expanduser() if log_file else None
        self._handlers = []

        self._setup_loggers()

    def _setup_loggers(self):
        """Setup all loggers with proper handlers."""
        # Main application logger, parent of every module logger in the package
        self.app_logger = logging.getLogger("ada_cli")
        self.app_logger.setLevel(self.log_level)

        # MQTT operations logger, also receives paho's own output in debug mode
        self.mqtt_logger = logging.getLogger("ada_cli.mqtt")

        self.crash_logger = logging.getLogger("ada_cli.crash")

        self._setup_console_handler()
        if self.log_file:
            self._setup_file_handler()

    def _setup_console_handler(self):
        """Setup console handler for immediate feedback."""
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(self._get_console_formatter())
        self._add_handler(console_handler)

    def _setup_file_handler(self):
        """Setup file handler with rotation."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file,
            maxBytes=5*1024*1024,  # 5MB
            backupCount=3,
            encoding='utf-8',
        )
        file_handler.setFormatter(self._get_formatter())
        self._add_handler(file_handler)

    def _add_handler(self, handler: logging.Handler):
        self.app_logger.addHandler(handler)
        self._handlers.append(handler)

    def _get_formatter(self):
        """Get detailed formatter for file logging."""
        return logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )

    def _get_console_formatter(self):
        """Get simple formatter for console output."""
        return logging.Formatter('%(levelname)s: %(message)s')

    def log_crash(self, error: Exception, context: str = ""):
        """Log a crash with full context."""
        trace = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
        self.crash_logger.error(
            f"CRASH - {error}\n"
            f"Context: {context or 'unknown'}\n"
            f"Traceback: {trace}"
        )

    def log_mqtt_error(self, error: MQTTConnectionError, msg: Optional[str] = None):
        """Log a broker failure with its reason code."""
        message = msg if msg is not None else error.message
        self.mqtt_logger.error(
            f"{message}\n"
            f"MQTT Reason-code: {error.reason_code}\n"
            f"Exception: {error.message}"
        )
        self.mqtt_logger.debug("MQTT failure traceback", exc_info=error)

    def cleanup(self):
        """Detach the handlers installed by this instance."""
        for handler in self._handlers:
            self.app_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

# Global logger instance
_global_logger: Optional[AdaLogger] = None

def get_logger() -> AdaLogger:
    """Get the global logger instance."""
    global _global_logger
    if _global_logger is None:
        raise RuntimeError("Logger not initialized. Call setup_logging() first.")
    return _global_logger

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> AdaLogger:
    """Setup the global logging system, replacing any previous setup."""
    global _global_logger
    if _global_logger is not None:
        _global_logger.cleanup()
    _global_logger = AdaLogger(log_level, log_file)
    return _global_logger

def log_crash(error: Exception, context: str = ""):
    """Log a crash using the global logger."""
    get_logger().log_crash(error, context)

def log_mqtt_error(error: MQTTConnectionError, msg: Optional[str] = None):
    """Log an MQTT failure using the global logger."""
    get_logger().log_mqtt_error(error, msg)
