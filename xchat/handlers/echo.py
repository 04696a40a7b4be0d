"""Relays every log line unchanged."""

from .base import BaseHandler
from .registry import handler_registry


@handler_registry.register("echo", description="Relay every log line unchanged")
class EchoHandler(BaseHandler):
    pass
