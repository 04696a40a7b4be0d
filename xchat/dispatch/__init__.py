"""
Dispatch of tailed lines to handlers and outbound queues.
"""

from .engine import DispatchEngine

__all__ = [
    "DispatchEngine",
]
