import io
import queue

import paho.mqtt.client as mqtt

from ada_cli.core.callbacks import MessageCallback, PrintCallback, QueueCallback
from ada_cli.utils.exceptions import MQTTConnectionError


class FlushTrackingStream(io.StringIO):
    def __init__(self):
        super().__init__()
        self.flushes = 0

    def flush(self):
        self.flushes += 1
        super().flush()


def make_message(mid, topic, payload):
    message = mqtt.MQTTMessage(mid=mid, topic=topic.encode('utf-8'))
    message.payload = payload
    return message


def test_message_line_format_and_flush():
    out = FlushTrackingStream()
    callback = PrintCallback(out)

    callback.message_arrived("pg42819/feeds/sensorfeed", make_message(7, "pg42819/feeds/sensorfeed", b"42"))

    assert out.getvalue() == "--- Incoming message [7] for topic [pg42819/feeds/sensorfeed] : [42]\n"
    assert out.flushes >= 1


def test_each_message_is_flushed():
    out = FlushTrackingStream()
    callback = PrintCallback(out)

    for mid in range(3):
        callback.message_arrived("t", make_message(mid, "t", b"x"))

    assert out.flushes >= 3
    assert out.getvalue().count("--- Incoming message") == 3


def test_undecodable_payload_is_replaced():
    out = io.StringIO()
    PrintCallback(out).message_arrived("t", make_message(1, "t", b"\xff\xfe"))
    assert "�" in out.getvalue()


def test_delivery_complete_line():
    out = FlushTrackingStream()
    PrintCallback(out).delivery_complete(3)
    assert out.getvalue() == "Delivery complete\n"
    assert out.flushes >= 1


def test_connection_lost_closes_owned_output(tmp_path):
    path = tmp_path / "messages.log"
    out = open(path, "a", encoding="utf-8")
    callback = PrintCallback(out, owns_output=True)

    callback.connection_lost(MQTTConnectionError(128, "Connection lost: Unspecified error"))

    assert out.closed
    assert callback.closed
    assert path.read_text(encoding="utf-8").startswith("Connection Lost: Connection lost: Unspecified error")


def test_connection_lost_leaves_console_open():
    out = io.StringIO()
    callback = PrintCallback(out)

    callback.connection_lost(MQTTConnectionError(128, "gone"))

    assert not out.closed
    assert callback.closed
    assert "Connection Lost: gone" in out.getvalue()


def test_events_after_close_are_dropped(tmp_path):
    path = tmp_path / "messages.log"
    callback = PrintCallback(open(path, "a", encoding="utf-8"), owns_output=True)
    callback.connection_lost(MQTTConnectionError(128, "gone"))

    callback.message_arrived("t", make_message(1, "t", b"late"))
    callback.delivery_complete(2)

    assert "late" not in path.read_text(encoding="utf-8")


def test_queue_callback_collects_payloads():
    messages = queue.Queue()
    callback = QueueCallback(messages)

    callback.message_arrived("a/b", make_message(1, "a/b", b"one"))
    callback.delivery_complete(1)
    callback.message_arrived("a/b", make_message(2, "a/b", b"two"))

    assert messages.get_nowait() == ("a/b", b"one")
    assert messages.get_nowait() == ("a/b", b"two")
    assert messages.empty()


def test_base_callback_ignores_events():
    callback = MessageCallback()
    callback.message_arrived("t", make_message(1, "t", b"x"))
    callback.delivery_complete(1)
    callback.connection_lost(MQTTConnectionError(128, "gone"))
