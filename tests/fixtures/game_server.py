"""
Minimal out-of-band UDP game server for testing purposes.

Answers getstatus queries with a canned status reply and records every
datagram it receives, so tests can assert on the rcon packets sent to it.
"""

import asyncio
from typing import List, Optional

STATUS_PREFIX = b"\xff\xff\xff\xffstatusResponse\n"


def build_status_reply(hostname: Optional[str], players: List[str]) -> bytes:
    info = "\\sv_maxclients\\16\\mapname\\oasago2"
    if hostname is not None:
        info += f"\\sv_hostname\\{hostname}"
    rows = [f'{score} 50 "{name}"' for score, name in enumerate(players)]
    return STATUS_PREFIX + "\n".join([info, *rows, ""]).encode("latin-1")


class FakeGameServer(asyncio.DatagramProtocol):
    """Loopback UDP server bound to an ephemeral port."""

    def __init__(
        self,
        hostname: Optional[str] = "Test Server",
        players: Optional[List[str]] = None,
        respond: bool = True,
        status_reply: Optional[bytes] = None,
    ):
        self.hostname = hostname
        self.players = players or []
        self.respond = respond
        self.status_reply = status_reply
        self.received: List[bytes] = []
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._packet_event = asyncio.Event()

    @classmethod
    async def start(cls, **kwargs) -> "FakeGameServer":
        loop = asyncio.get_running_loop()
        _, server = await loop.create_datagram_endpoint(
            lambda: cls(**kwargs), local_addr=("127.0.0.1", 0)
        )
        return server

    @property
    def port(self) -> int:
        assert self.transport is not None
        return self.transport.get_extra_info("sockname")[1]

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        self.received.append(data)
        self._packet_event.set()
        if not self.respond or self.transport is None:
            return
        if data == b"\xff\xff\xff\xffgetstatus":
            reply = self.status_reply or build_status_reply(self.hostname, self.players)
            self.transport.sendto(reply, addr)

    @property
    def rcon_packets(self) -> List[bytes]:
        return [packet for packet in self.received if packet.startswith(b"\xff\xff\xff\xffrcon ")]

    async def wait_for_rcon(self, count: int = 1, timeout: float = 5.0) -> List[bytes]:
        """Wait until at least ``count`` rcon packets arrived."""

        async def _wait():
            while len(self.rcon_packets) < count:
                self._packet_event.clear()
                await self._packet_event.wait()

        await asyncio.wait_for(_wait(), timeout)
        return self.rcon_packets

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
