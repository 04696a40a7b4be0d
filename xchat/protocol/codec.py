"""Out-of-band packet framing and getstatus reply decoding."""

from typing import Dict, List

from ..errors import StatusResponseError
from ..models import ServerStatus

OOB_PREFIX = b"\xff\xff\xff\xff"

# Printable ASCII minus the characters that break out of a quoted rcon argument
_FORBIDDEN_CHARS = frozenset({34, 59, 92})  # " ; \


def build_packet(command: str) -> bytes:
    """Frame ``command`` as an out-of-band datagram."""
    return OOB_PREFIX + command.encode("latin-1", errors="replace")


def build_getstatus() -> bytes:
    return build_packet("getstatus")


def build_rcon_qsay(password: str, text: str) -> bytes:
    """Build ``rcon <password> qsay "<text>"``.

    ``text`` is expected to be escaped already; see :func:`escape_string`.
    """
    return build_packet(f'rcon {password} qsay "{text}"')


def escape_string(text: str | None) -> str:
    """Drop every character that is not safe inside a quoted qsay argument.

    Only printable ASCII (32-126) survives, minus double quote, semicolon and
    backslash. Characters are removed, never replaced.
    """
    if not text:
        return ""
    return "".join(
        char
        for char in text
        if 32 <= ord(char) <= 126 and ord(char) not in _FORBIDDEN_CHARS
    )


def parse_info_string(info: str) -> Dict[str, str]:
    """Decode ``\\key1\\value1\\key2\\value2`` into a mapping.

    A trailing key without a value is ignored.
    """
    parts = info.split("\\")
    if parts and parts[0] == "":
        parts = parts[1:]

    keys: Dict[str, str] = {}
    for key, value in zip(parts[0::2], parts[1::2]):
        keys[key] = value
    return keys


def parse_player_line(line: str) -> str | None:
    """Return the first double-quoted substring of a player row, if any."""
    fields = line.split('"')
    if len(fields) < 3:
        return None
    return fields[1]


def parse_status_response(data: bytes | str) -> ServerStatus:
    """Decode a getstatus reply.

    Line 0 (``\\xff\\xff\\xff\\xffstatusResponse``) is ignored, line 1 holds the
    server info string and every following non-blank line describes a player
    as ``<score> <ping> "<name>"``.

    Raises:
        StatusResponseError: The reply has no info string line.
    """
    text = data.decode("latin-1") if isinstance(data, bytes) else data
    rows = text.split("\n")
    if len(rows) < 2 or not rows[1].strip():
        raise StatusResponseError(f"status response has no info string: {text!r}")

    players: List[str] = []
    for row in rows[2:]:
        if not row.strip():
            continue
        name = parse_player_line(row)
        if name is not None:
            players.append(name)

    return ServerStatus(keys=parse_info_string(rows[1].rstrip("\r")), players=players)
