"""asyncio datagram helpers for one-shot queries and long-lived send sockets."""

import asyncio
from typing import Optional

from ..logger import logger


class _RequestProtocol(asyncio.DatagramProtocol):
    """Resolves ``response`` with the first datagram received."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.response: asyncio.Future[bytes] = loop.create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if not self.response.done():
            self.response.set_exception(
                exc or ConnectionError("socket closed before a response arrived")
            )


async def send_udp_request(
    host: str, port: int, payload: bytes, timeout: float
) -> bytes:
    """Send ``payload`` from a fresh socket and wait for the first reply.

    The socket is always closed before returning.

    Raises:
        TimeoutError: No reply arrived within ``timeout`` seconds.
        OSError: The socket could not be created or the host refused the packet.
    """
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: _RequestProtocol(loop), remote_addr=(host, port)
    )
    try:
        transport.sendto(payload)
        return await asyncio.wait_for(protocol.response, timeout)
    finally:
        transport.close()
        # Keep a late connection_lost from leaving an unretrieved exception
        if not protocol.response.done():
            protocol.response.cancel()


class UdpChannel(asyncio.DatagramProtocol):
    """A connected UDP socket owned by one endpoint for outbound commands."""

    def __init__(self, address: str):
        self.address = address
        self.transport: Optional[asyncio.DatagramTransport] = None

    @classmethod
    async def open(cls, host: str, port: int) -> "UdpChannel":
        loop = asyncio.get_running_loop()
        _, channel = await loop.create_datagram_endpoint(
            lambda: cls(f"{host}:{port}"), remote_addr=(host, port)
        )
        return channel

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        logger.debug(
            f"Reply from {self.address}: {data.decode('latin-1', errors='replace')!r}"
        )

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"Socket error from {self.address}: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.transport = None

    @property
    def is_open(self) -> bool:
        return self.transport is not None and not self.transport.is_closing()

    def send(self, packet: bytes) -> None:
        if not self.is_open:
            raise ConnectionError(f"socket for {self.address} is closed")
        assert self.transport is not None
        self.transport.sendto(packet)

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
