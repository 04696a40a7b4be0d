"""Shared data model for endpoints, tailed lines and handler results."""

from enum import Enum
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class SendTo(str, Enum):
    """Which servers receive the messages a handler produces."""

    NONE = "none"
    ORIGINAL_SERVER = "original_server"
    OTHER_SERVERS = "other_servers"
    ALL_SERVERS = "all_servers"


class ServerStatus(BaseModel):
    """Decoded getstatus reply."""

    keys: Dict[str, str] = Field(default_factory=dict)
    players: List[str] = Field(default_factory=list)


class ServerEndpoint(BaseModel):
    """A configured game server taking part in the relay.

    ``display_name``, ``active`` and ``status`` are only written by the status
    prober. Endpoints compare by identity so that two entries never alias each
    other when destination sets are computed.
    """

    model_config = ConfigDict(validate_assignment=True)

    host: str
    port: int
    log_path: Path
    rcon_password: str = Field(repr=False)
    display_name: str = ""
    active: bool = False
    status: ServerStatus = Field(default_factory=ServerStatus)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def name(self) -> str:
        return self.display_name or self.address

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __str__(self) -> str:
        return self.address


class TailedLine(BaseModel):
    """One non-blank line read from an endpoint's log."""

    source: ServerEndpoint
    line: str


class ParsedEvent(BaseModel):
    """The output of one handler invocation on one line."""

    source: ServerEndpoint
    messages: List[str]
    send_to: SendTo
