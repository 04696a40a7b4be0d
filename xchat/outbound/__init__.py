"""
Outbound delivery for the relay.

Buffers messages per server and sends them over RCON at a fixed rate.
"""

from .queue import OutboundQueue, OutboundQueues
from .sender import OutboundSender

__all__ = [
    "OutboundQueue",
    "OutboundQueues",
    "OutboundSender",
]
