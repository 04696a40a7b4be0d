"""One-shot getstatus probe that resolves an endpoint's name and liveness."""

from ..errors import StatusResponseError
from ..logger import logger
from ..models import ServerEndpoint
from .codec import build_getstatus, parse_status_response
from .udp import send_udp_request


class StatusProber:
    """Queries each endpoint once at startup.

    A reply marks the endpoint active and sets its display name from
    ``sv_hostname``. Timeouts, socket errors and undecodable replies leave it
    inactive; the probe is never retried.
    """

    def __init__(self, timeout: float = 3.0):
        """
        Args:
            timeout: Seconds to wait for the getstatus reply
        """
        self.timeout = timeout

    async def probe(self, endpoint: ServerEndpoint) -> bool:
        """Probe ``endpoint`` and update it in place.

        Returns:
            Whether the endpoint answered with a usable status reply
        """
        try:
            reply = await send_udp_request(
                endpoint.host, endpoint.port, build_getstatus(), self.timeout
            )
        except TimeoutError:
            logger.warning(
                f"Server {endpoint.address} is unreachable "
                f"(no reply within {self.timeout:g}s), ignoring server"
            )
            return False
        except OSError as e:
            logger.warning(
                f"Server {endpoint.address} is unreachable ({e}), ignoring server"
            )
            return False

        try:
            status = parse_status_response(reply)
        except StatusResponseError as e:
            logger.error(f"Malformed status reply from {endpoint.address}: {e}")
            return False

        hostname = status.keys.get("sv_hostname")
        if not hostname:
            logger.warning(
                f"Server {endpoint.address} did not report sv_hostname, "
                "using its address as display name"
            )
        endpoint.status = status
        endpoint.display_name = hostname or endpoint.address
        endpoint.active = True
        logger.info(
            f"Server {endpoint.address} is '{endpoint.display_name}' "
            f"with {len(status.players)} player(s)"
        )
        return True
