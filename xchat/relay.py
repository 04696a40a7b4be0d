"""Wires tailers, the dispatch engine and the outbound senders together."""

import asyncio
from typing import Dict, List, Optional, Sequence

from .config import RelaySettings, Settings
from .dispatch.engine import DispatchEngine
from .errors import ConfigurationError, TailerError
from .handlers import handler_registry
from .handlers.base import BaseHandler
from .logger import logger
from .models import ServerEndpoint, TailedLine
from .outbound.queue import OutboundQueues
from .outbound.sender import OutboundSender
from .protocol.prober import StatusProber
from .tailer.tailer import LogTailer


def endpoints_from_settings(settings: Settings) -> List[ServerEndpoint]:
    return [
        ServerEndpoint(
            host=server.host,
            port=server.port,
            log_path=server.log,
            rcon_password=server.rcon_password,
        )
        for server in settings.servers
    ]


class CrossServerChat:
    """The relay: one tailer, one probe and one sender per endpoint."""

    def __init__(
        self,
        endpoints: Sequence[ServerEndpoint],
        handlers: Sequence[BaseHandler],
        relay_settings: Optional[RelaySettings] = None,
    ):
        if not endpoints:
            raise ConfigurationError("at least one server must be configured")

        self.endpoints = list(endpoints)
        self.handlers = list(handlers)
        self.relay_settings = relay_settings or RelaySettings()

        self.queues = OutboundQueues(self.endpoints)
        self.engine = DispatchEngine(self.endpoints, self.handlers, self.queues)
        self.sender = OutboundSender(
            self.queues, interval=self.relay_settings.send_interval_ms / 1000
        )
        self.prober = StatusProber(timeout=self.relay_settings.probe_timeout_ms / 1000)

        self.channel: "asyncio.Queue[TailedLine]" = asyncio.Queue(
            maxsize=self.relay_settings.line_queue_size
        )
        self.tailers: Dict[ServerEndpoint, LogTailer] = {}
        self._dispatch_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CrossServerChat":
        """Build the relay from loaded settings.

        Raises:
            ConfigurationError: A configured handler is not registered
        """
        handlers = handler_registry.build(settings.handlers, settings)
        return cls(endpoints_from_settings(settings), handlers, settings.relay)

    @property
    def running(self) -> bool:
        return self._dispatch_task is not None and not self._dispatch_task.done()

    async def start(self) -> None:
        """Probe every server, then start tailing, dispatching and sending."""
        if self.running:
            logger.warning("Cross server chat is already running")
            return

        logger.info(
            f"Starting cross server chat for {len(self.endpoints)} server(s) "
            f"with handlers: {', '.join(handler.name for handler in self.handlers)}"
        )
        await asyncio.gather(*(self.prober.probe(endpoint) for endpoint in self.endpoints))

        poll_interval = self.relay_settings.poll_interval_ms / 1000
        for endpoint in self.endpoints:
            tailer = LogTailer(endpoint, self.channel, poll_interval=poll_interval)
            try:
                await tailer.open()
            except TailerError as e:
                logger.error(f"Ignoring log of server {endpoint.address}: {e}")
                continue
            tailer.start()
            self.tailers[endpoint] = tailer

        self._dispatch_task = asyncio.create_task(self.engine.run(self.channel))
        await self.sender.start()

        active = sum(1 for endpoint in self.endpoints if endpoint.active)
        logger.info(
            f"Cross server chat started: {active}/{len(self.endpoints)} server(s) "
            f"reachable, {len(self.tailers)} log(s) tailed"
        )

    async def stop(self) -> None:
        """Stop all tailers, the dispatcher and the senders."""
        for tailer in self.tailers.values():
            await tailer.stop()
        self.tailers.clear()

        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        await self.sender.stop()
        logger.info("Cross server chat stopped")
