"""
Callback sinks for MQTT client events.

Callbacks are invoked from paho's network thread, never from the thread that
is blocked in AdafruitSession.subscribe().
"""
import logging
import queue
from typing import IO, Optional, Tuple

import click

logger = logging.getLogger(__name__)


class MessageCallback:
    """Receives message-arrived, delivery-complete and connection-lost events.

    The default implementation ignores every event; subclasses override the
    hooks they care about.
    """

    def message_arrived(self, topic: str, message) -> None:
        """Called with the topic and the paho MQTTMessage of each incoming message."""

    def delivery_complete(self, mid: int) -> None:
        """Called when an outgoing QoS >= 1 message has been acknowledged."""

    def connection_lost(self, cause: Exception) -> None:
        """Called once when the broker connection drops unexpectedly."""


class PrintCallback(MessageCallback):
    """Writes events to a text stream, flushing after every line.

    The process may be killed at any time, so nothing is left buffered.
    """

    def __init__(self, output: IO[str], owns_output: bool = False):
        self._out = output
        self._owns_output = owns_output
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _write(self, line: str):
        if self._closed:
            logger.debug(f"Output already closed, dropping: {line}")
            return
        click.echo(line, file=self._out)
        self._out.flush()

    def message_arrived(self, topic, message):
        payload = message.payload.decode('utf-8', errors='replace')
        self._write(f"--- Incoming message [{message.mid}] for topic [{topic}] : [{payload}]")

    def delivery_complete(self, mid):
        self._write("Delivery complete")

    def connection_lost(self, cause):
        self._write(f"Connection Lost: {cause}")
        # stdout stays open for the rest of the process
        if self._owns_output and not self._closed:
            self._out.close()
        self._closed = True


class QueueCallback(MessageCallback):
    """Hands incoming messages to a queue instead of writing them out."""

    def __init__(self, messages: Optional["queue.Queue[Tuple[str, bytes]]"] = None):
        self.messages = messages if messages is not None else queue.Queue()
        self.lost_cause = None

    def message_arrived(self, topic, message):
        self.messages.put((topic, bytes(message.payload)))

    def connection_lost(self, cause):
        self.lost_cause = cause
