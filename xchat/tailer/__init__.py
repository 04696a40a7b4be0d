"""
Log tailing for the relay.

Follows each server's console log and queues newly written lines.
"""

from .tailer import LogTailer

__all__ = [
    "LogTailer",
]
