"""Relays public ``say:`` chat lines."""

import re
from typing import List, Optional

from ..config import HandlerSettings, Settings
from ..logger import logger
from ..models import SendTo, ServerEndpoint
from .base import BaseHandler
from .registry import handler_registry

DEFAULT_FORMAT = "{server}^7@{player}^7: ^2{message}"


def _create(handler_settings: HandlerSettings, settings: Optional[Settings]):
    message_format = settings.say_format if settings is not None else DEFAULT_FORMAT
    return SayHandler(message_format=message_format, send_to=handler_settings.send_to)


@handler_registry.register(
    "say", description="Relay public chat to the other servers", factory=_create
)
class SayHandler(BaseHandler):
    """Matches ``say: <player>: <message>`` lines.

    The relayed text is ``message_format`` filled with ``server`` (the source's
    display name), ``player`` and ``message``.
    """

    say_pattern = re.compile(r"^say: (.+): (.+)$")

    def __init__(
        self, message_format: str = DEFAULT_FORMAT, send_to: Optional[SendTo] = None
    ):
        super().__init__(send_to=send_to)
        self.message_format = message_format

    async def handle(self, line: str, source: ServerEndpoint) -> List[str]:
        if not line.startswith("say: "):
            return []

        match = self.say_pattern.match(line)
        if match is None:
            return []

        player, message = match.group(1), match.group(2)
        logger.debug(f"Parsed chat on {source.address}: <{player}> {message}")
        return [
            self.message_format.format(
                server=source.name, player=player, message=message
            )
        ]
