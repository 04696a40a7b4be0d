"""
Line handlers for the relay.

Importing this package registers the built-in handlers with
``handler_registry``.
"""

from .base import BaseHandler
from .echo import EchoHandler
from .registry import HandlerRegistry, handler_registry
from .say import SayHandler
from .url_title import UrlTitleHandler

__all__ = [
    "BaseHandler",
    "EchoHandler",
    "HandlerRegistry",
    "SayHandler",
    "UrlTitleHandler",
    "handler_registry",
]
