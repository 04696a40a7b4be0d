"""Per-endpoint FIFO of messages waiting to be sent."""

from collections import deque
from typing import Deque, Dict, Iterable, Iterator, List, Optional

from ..models import ServerEndpoint


class OutboundQueue:
    """Unbounded FIFO of pending messages for one endpoint.

    Messages are never evicted; an endpoint that stays inactive keeps its
    whole backlog.
    """

    def __init__(self, endpoint: ServerEndpoint):
        self.endpoint = endpoint
        self._messages: Deque[str] = deque()

    def put(self, message: str) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        self._messages.extend(messages)

    def pop(self) -> Optional[str]:
        """Remove and return the oldest message, or None when empty."""
        if not self._messages:
            return None
        return self._messages.popleft()

    def snapshot(self) -> List[str]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)


class OutboundQueues:
    """One :class:`OutboundQueue` per endpoint, keyed by endpoint identity."""

    def __init__(self, endpoints: Iterable[ServerEndpoint]):
        self._queues: Dict[ServerEndpoint, OutboundQueue] = {
            endpoint: OutboundQueue(endpoint) for endpoint in endpoints
        }

    def __getitem__(self, endpoint: ServerEndpoint) -> OutboundQueue:
        return self._queues[endpoint]

    def __iter__(self) -> Iterator[OutboundQueue]:
        return iter(self._queues.values())

    def __len__(self) -> int:
        return len(self._queues)
