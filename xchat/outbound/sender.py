"""Rate-limited delivery of queued messages over RCON."""

import asyncio
from typing import Dict, Optional

from ..logger import log_exception, logger
from ..models import ServerEndpoint
from ..protocol.codec import build_rcon_qsay, escape_string
from ..protocol.udp import UdpChannel
from .queue import OutboundQueue, OutboundQueues


class OutboundSender:
    """Drains every endpoint's queue at most one message per tick.

    Each endpoint gets its own ticker task and its own UDP socket. Inactive
    endpoints are skipped on every tick, so their backlog only grows.
    """

    def __init__(self, queues: OutboundQueues, interval: float = 0.55):
        """Initialize outbound sender.

        Args:
            queues: Per-endpoint message queues to drain
            interval: Seconds between two sends to the same endpoint
        """
        self.queues = queues
        self.interval = interval

        self._channels: Dict[ServerEndpoint, UdpChannel] = {}
        self._tasks: Dict[ServerEndpoint, asyncio.Task] = {}

    async def start(self) -> None:
        """Open one socket and start one ticker per endpoint."""
        for queue in self.queues:
            endpoint = queue.endpoint
            if endpoint in self._tasks:
                logger.warning(f"Sender for {endpoint.address} is already running")
                continue

            try:
                self._channels[endpoint] = await UdpChannel.open(
                    endpoint.host, endpoint.port
                )
            except OSError as e:
                logger.error(
                    f"Cannot open rcon socket for {endpoint.address}, "
                    f"messages to it will not be sent: {e}"
                )
                continue

            self._tasks[endpoint] = asyncio.create_task(self._tick_loop(queue))
        logger.info(f"Started {len(self._tasks)} outbound sender(s)")

    async def stop(self) -> None:
        """Cancel every ticker and close every socket."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        for channel in self._channels.values():
            channel.close()
        self._channels.clear()
        logger.info("Stopped outbound senders")

    def tick(self, queue: OutboundQueue) -> Optional[str]:
        """Send the oldest pending message of ``queue``, if its endpoint is active.

        Returns:
            The message taken from the queue, or None if nothing was sent
        """
        endpoint = queue.endpoint
        if not endpoint.active or not queue:
            return None

        message = queue.pop()
        self._send(endpoint, message)
        return message

    @log_exception("Sending rcon packet to {endpoint}")
    def _send(self, endpoint: ServerEndpoint, message: str) -> None:
        channel = self._channels.get(endpoint)
        if channel is None:
            raise ConnectionError(f"no rcon socket for {endpoint.address}")
        channel.send(build_rcon_qsay(endpoint.rcon_password, escape_string(message)))

    async def _tick_loop(self, queue: OutboundQueue) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                self.tick(queue)
        except asyncio.CancelledError:
            logger.debug(f"Sender loop cancelled for {queue.endpoint.address}")
            raise
