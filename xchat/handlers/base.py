"""Handler contract consumed by the dispatch engine."""

from typing import List, Optional

from ..models import SendTo, ServerEndpoint


class BaseHandler:
    """Turns a log line into zero or more chat messages.

    Subclasses override :meth:`handle` and, when their output should go
    somewhere other than the other servers, ``default_send_to``. The base
    implementation relays every line unchanged.
    """

    name: str = "base"
    description: str = ""
    default_send_to: SendTo = SendTo.OTHER_SERVERS

    def __init__(self, send_to: Optional[SendTo] = None):
        self._send_to = send_to

    @property
    def send_to(self) -> SendTo:
        return self._send_to if self._send_to is not None else self.default_send_to

    async def handle(self, line: str, source: ServerEndpoint) -> List[str]:
        return [line]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(send_to={self.send_to.value})"
