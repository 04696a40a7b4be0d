"""
Out-of-band UDP protocol spoken by the game servers.

Frames getstatus and rcon packets and probes servers for their status.
"""

from .codec import (
    OOB_PREFIX,
    build_getstatus,
    build_packet,
    build_rcon_qsay,
    escape_string,
    parse_status_response,
)
from .prober import StatusProber
from .udp import UdpChannel, send_udp_request

__all__ = [
    "OOB_PREFIX",
    "StatusProber",
    "UdpChannel",
    "build_getstatus",
    "build_packet",
    "build_rcon_qsay",
    "escape_string",
    "parse_status_response",
    "send_udp_request",
]
