#!/usr/bin/env python3
"""
ada - publish to and subscribe to Adafruit IO feeds over MQTT.

This is the main entry point that:
1. Resolves the broker, account and API key (flags, env vars, config file)
2. Connects a single session under a client id
3. Either publishes one message or subscribes and prints incoming messages
4. Disconnects on every exit path
"""

import contextlib
import logging
import signal
import threading
from pathlib import Path

import click

from . import __version__
from .core.callbacks import PrintCallback
from .mqtt_operations import AdafruitSession
from .utils.config_manager import (
    DEFAULT_BROKER_URI,
    DEFAULT_MESSAGE,
    DEFAULT_QOS,
    DEFAULT_TIMEOUT,
    DEFAULT_TOPIC,
    ConfigManager,
    Settings,
    resolve_settings,
)
from .utils.debug_logger import debug_log
from .utils.exceptions import ConfigurationError, MQTTConnectionError
from .utils.logger import log_crash, log_mqtt_error, setup_logging

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


@contextlib.contextmanager
def cancel_on_signals(session: AdafruitSession, signals=(signal.SIGINT, signal.SIGTERM)):
    """Turn SIGINT/SIGTERM into session.cancel() while the block runs.

    Python only delivers signals to the main thread, so elsewhere the block runs
    without handlers and the caller ends the wait with session.cancel().
    """
    if threading.current_thread() is not threading.main_thread():
        logger.debug("Not on the main thread, signal handlers not installed")
        yield session
        return

    def handler(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, stopping subscription")
        session.cancel()

    previous = {signum: signal.signal(signum, handler) for signum in signals}
    try:
        yield session
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


@debug_log
def run_subscribe(session: AdafruitSession, settings: Settings):
    """Subscribe and print messages to the console or append them to a file."""
    destination = settings.file_path or "the console"
    with click.open_file(settings.file_path or '-', mode='a', encoding='utf-8') as output:
        callback = PrintCallback(output, owns_output=settings.file_path is not None)
        click.echo(f"Subscribed events written to {destination}")
        session.connect(settings.effective_client_id)
        with cancel_on_signals(session):
            session.subscribe(settings.topic, callback, settings.qos, settings.timeout)


@debug_log
def run_publish(session: AdafruitSession, settings: Settings):
    """Publish a single message."""
    message = settings.message
    if message is None:
        click.echo("No message was specified with --message, publishing a test message")
        message = DEFAULT_MESSAGE
    session.connect(settings.effective_client_id)
    session.publish(settings.topic, message, settings.qos)


@click.command(name='ada', context_settings=CONTEXT_SETTINGS)
@click.option('-t', '--topic', default=None,
              help=f'Topic to which to publish or subscribe (default: {DEFAULT_TOPIC})')
@click.option('-m', '--message', default=None, help='Message to publish')
@click.option('-s', '--subscribe', is_flag=True,
              help='Subscribe and listen for messages and output to the console')
@click.option('-q', '--qos', type=click.IntRange(0, 2), default=None,
              help='Quality of Service: 0 = at most once, 1 = at least once, '
                   f'2 = exactly once (default: {DEFAULT_QOS})')
@click.option('-f', '--file', 'file_path', type=click.Path(dir_okay=False), default=None,
              help='File to which subscribed messages are appended')
@click.option('--timeout', type=click.IntRange(min=0), default=DEFAULT_TIMEOUT,
              help='Subscription timeout in seconds. Use 0 to wait forever (default: 0)')
@click.option('--client-id', default=None,
              help='Id to use for the client (default: fixed values for subscribe and publish)')
@click.option('--aio-user', envvar='AIO_USERNAME', default=None,
              help='Adafruit.IO username (default: AIO_USERNAME env var or config file)')
@click.option('--aio-key', envvar='AIO_KEY', default=None,
              help='Adafruit.IO API key. Defaults to AIO_KEY env var or fails if not supplied')
@click.option('--aio-broker', envvar='AIO_BROKER', default=None,
              help=f'Adafruit.IO broker URI (default: {DEFAULT_BROKER_URI})')
@click.option('--config-dir', default=str(Path.home() / '.ada'),
              help='Configuration directory holding config.json (default: ~/.ada)')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--log-file', type=click.Path(dir_okay=False), default=None,
              help='Also write logs to this file (rotated at 5MB)')
@click.version_option(__version__, prog_name='ada')
@click.pass_context
def main(ctx, topic, message, subscribe, qos, file_path, timeout, client_id,
         aio_user, aio_key, aio_broker, config_dir, debug, log_file):
    """
    Publish to and subscribe to Adafruit.IO topics.

    Topics are addressed below the account, so --topic feeds/sensorfeed
    with user alice becomes alice/feeds/sensorfeed.

    Examples:
        ada -m 42
        ada -t feeds/sensorfeed -m 42 -q 0
        ada -s --timeout 30 -f messages.log
    """
    ctx.ensure_object(dict)
    ctx.obj['DEBUG'] = debug
    setup_logging("DEBUG" if debug else "INFO", log_file)

    try:
        settings = resolve_settings(
            ConfigManager(config_dir),
            topic=topic,
            qos=qos,
            subscribe=subscribe,
            message=message,
            client_id=client_id,
            file_path=file_path,
            timeout=timeout,
            username=aio_user,
            key=aio_key,
            broker=aio_broker,
        )
    except ConfigurationError as e:
        raise click.UsageError(str(e), ctx=ctx)
    ctx.obj['SETTINGS'] = settings

    mode = "subscription" if settings.subscribe else "publish"
    try:
        with AdafruitSession(settings.broker) as session:
            if settings.subscribe:
                run_subscribe(session, settings)
            else:
                run_publish(session, settings)
    except MQTTConnectionError as e:
        log_mqtt_error(e, f"Problem with Adafruit {mode}")
    except Exception as e:
        log_crash(e, context=mode)
        raise click.ClickException(f"Unexpected failure during {mode}: {str(e)}") from e


if __name__ == '__main__':
    main()
