"""Routes tailed lines through the handlers into the outbound queues."""

import asyncio
from typing import List, Sequence

from ..handlers.base import BaseHandler
from ..logger import logger
from ..models import ParsedEvent, SendTo, ServerEndpoint, TailedLine
from ..outbound.queue import OutboundQueues


class DispatchEngine:
    """Runs every handler on every line and fans the results out.

    Handlers run in registration order and independently of each other: an
    empty result or a failure in one handler never affects the others.
    """

    def __init__(
        self,
        endpoints: Sequence[ServerEndpoint],
        handlers: Sequence[BaseHandler],
        queues: OutboundQueues,
    ):
        """Initialize dispatch engine.

        Args:
            endpoints: Every configured endpoint, in configuration order
            handlers: Installed handlers, in registration order
            queues: Outbound queue of each endpoint
        """
        self.endpoints = tuple(endpoints)
        self.handlers = tuple(handlers)
        self.queues = queues

    async def run(self, channel: "asyncio.Queue[TailedLine]") -> None:
        """Consume tailed lines until cancelled."""
        try:
            while True:
                item = await channel.get()
                try:
                    await self.process_line(item.source, item.line)
                finally:
                    channel.task_done()
        except asyncio.CancelledError:
            logger.debug("Dispatch loop cancelled")
            raise

    async def process_line(self, source: ServerEndpoint, line: str) -> List[ParsedEvent]:
        """Run all handlers on ``line`` and enqueue what they produce.

        Returns:
            The non-empty handler results, in handler order
        """
        if not line.strip():
            return []

        events = []
        for handler in self.handlers:
            try:
                messages = await handler.handle(line, source)
            except Exception as e:
                logger.error(
                    f"Handler {handler.name} failed on line from {source.address} "
                    f"{line!r}: {e}",
                    exc_info=True,
                )
                continue

            if not messages:
                continue

            event = ParsedEvent(
                source=source, messages=list(messages), send_to=handler.send_to
            )
            self.route(event)
            events.append(event)
        return events

    def destinations(
        self, source: ServerEndpoint, send_to: SendTo
    ) -> List[ServerEndpoint]:
        """Resolve a handler's classification to concrete endpoints."""
        match send_to:
            case SendTo.ORIGINAL_SERVER:
                return [source]
            case SendTo.OTHER_SERVERS:
                return [endpoint for endpoint in self.endpoints if endpoint is not source]
            case SendTo.ALL_SERVERS:
                return list(self.endpoints)
            case _:
                return []

    def route(self, event: ParsedEvent) -> None:
        """Append every message of ``event`` to each destination's queue."""
        targets = self.destinations(event.source, event.send_to)
        for endpoint in targets:
            self.queues[endpoint].extend(event.messages)

        if targets:
            logger.debug(
                f"Queued {len(event.messages)} message(s) from {event.source.address} "
                f"for {', '.join(endpoint.address for endpoint in targets)}"
            )
