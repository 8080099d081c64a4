"""
Debug logging utility for the ada CLI.
"""
import logging
import functools
import click
import inspect
from typing import Callable

def get_command_logger(command_name: str) -> logging.Logger:
    """Get a logger for a specific command module."""
    logger = logging.getLogger(f"ada_cli.commands.{command_name}")
    return logger

def debug_log(func: Callable) -> Callable:
    """Decorator to add debug logging to command functions.

    Active only when the current click context has DEBUG set in its obj.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context(silent=True)
        is_debug = bool(ctx and isinstance(ctx.obj, dict) and ctx.obj.get('DEBUG', False))
        if not is_debug:
            return func(*args, **kwargs)

        # Get the command name from the function's module
        command_name = func.__module__.split('.')[-1]
        logger = get_command_logger(command_name)

        func_args = inspect.signature(func).bind(*args, **kwargs)
        func_args.apply_defaults()
        # Filter out context object from logged arguments
        filtered_args = {k: v for k, v in func_args.arguments.items()
                         if k != 'ctx' and not k.startswith('_')}

        logger.debug(f"Executing {func.__name__} with args: {filtered_args}")

        try:
            result = func(*args, **kwargs)
            logger.debug(f"{func.__name__} completed successfully")
            return result
        except Exception as e:
            logger.debug(f"Error in {func.__name__}: {str(e)}")
            raise

    return wrapper
