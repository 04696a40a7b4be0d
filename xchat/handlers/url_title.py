"""Announces the page title of links posted in chat."""

import asyncio
import html
import re
from typing import List, Optional

import httpx

from ..logger import log_exception, logger
from ..models import SendTo, ServerEndpoint
from .base import BaseHandler
from .registry import handler_registry

URL_PATTERN = re.compile(
    r"(http|https)://[\w-]+(\.[\w-]+)+([\w.,@?^=%&:/~+#-]*[\w@?^=%&/~+#-])?"
)
TITLE_PATTERN = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)

# Only this much of a page is searched for its title
MAX_BODY_BYTES = 256 * 1024


@handler_registry.register(
    "url_title", description="Post the title of linked web pages to every server"
)
class UrlTitleHandler(BaseHandler):
    default_send_to = SendTo.ALL_SERVERS

    def __init__(
        self,
        send_to: Optional[SendTo] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(send_to=send_to)
        self.timeout = timeout
        self._transport = transport

    async def handle(self, line: str, source: ServerEndpoint) -> List[str]:
        match = URL_PATTERN.search(line)
        if match is None:
            return []

        title = await self.fetch_title(match.group(0))
        if not title:
            return []
        return [f"^7{title}"]

    @log_exception("Fetching title of {url}")
    async def fetch_title(self, url: str) -> Optional[str]:
        """Stream at most ``MAX_BODY_BYTES`` of an HTML page and return its title.

        The whole lookup, body included, is bounded by ``timeout`` seconds.
        Non-HTML and unsuccessful responses are closed without reading the body.
        """
        async with asyncio.timeout(self.timeout):
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        logger.debug(
                            f"Title lookup for {url} returned {response.status_code}"
                        )
                        return None

                    content_type = response.headers.get("content-type", "")
                    if "html" not in content_type.lower():
                        logger.debug(f"Skipping {url} with content type {content_type!r}")
                        return None

                    body = bytearray()
                    async for data in response.aiter_bytes():
                        body.extend(data)
                        if len(body) >= MAX_BODY_BYTES:
                            break
                    encoding = response.encoding or "utf-8"

        document = bytes(body[:MAX_BODY_BYTES]).decode(encoding, errors="replace")
        return extract_title(document)


def extract_title(document: str) -> Optional[str]:
    """Return the unescaped, whitespace-collapsed ``<title>`` of ``document``."""
    match = TITLE_PATTERN.search(document)
    if match is None:
        return None
    title = " ".join(html.unescape(match.group(1)).split())
    return title or None
