"""
Core functionality for the ada CLI.
"""
from .callbacks import MessageCallback, PrintCallback, QueueCallback

__all__ = [
    'MessageCallback',
    'PrintCallback',
    'QueueCallback'
]
