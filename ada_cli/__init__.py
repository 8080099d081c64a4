"""
ada - a command-line interface for publishing to and subscribing to Adafruit IO feeds over MQTT.
"""

__version__ = "1.0.0"

__all__ = ['__version__']
