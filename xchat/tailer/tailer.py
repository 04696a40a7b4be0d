"""Incremental log file tailing using watchfiles polling."""

import asyncio
from typing import List, Optional

import aiofiles
from aiofiles import os as aioos
from watchfiles import Change, awatch

from ..errors import TailerError
from ..logger import logger
from ..models import ServerEndpoint, TailedLine


class LogTailer:
    """Follows one server's log file and queues every new line.

    Only content appended after :meth:`open` is reported. Growth is detected by
    polling because filesystem notifications are unreliable for files that
    game servers keep open for writing.
    """

    def __init__(
        self,
        endpoint: ServerEndpoint,
        channel: "asyncio.Queue[TailedLine]",
        poll_interval: float = 0.1,
    ):
        """Initialize log tailer.

        Args:
            endpoint: Server whose log is followed
            channel: Queue receiving the lines read from the log
            poll_interval: Seconds between file size checks
        """
        self.endpoint = endpoint
        self.channel = channel
        self.poll_interval = poll_interval

        # Tail state: open handle, byte offset and the inode it belongs to
        self._file = None
        self._offset = 0
        self._inode: Optional[int] = None

        # Bytes after the last newline, completed by the next chunk
        self._partial = b""

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        # Set when tailing ended because of an I/O failure
        self.error: Optional[TailerError] = None

    @property
    def path(self):
        return self.endpoint.log_path

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def open(self) -> None:
        """Open the log and start from its current end.

        Raises:
            TailerError: The file cannot be inspected or opened
        """
        try:
            stat = await aioos.stat(self.path)
            self._file = await aiofiles.open(self.path, "rb")
        except OSError as e:
            raise TailerError(
                f"cannot open log {self.path} for {self.endpoint.address}: {e}"
            ) from e

        self._offset = stat.st_size
        self._inode = stat.st_ino
        self._partial = b""
        logger.info(
            f"Watching log file {self.path} for server {self.endpoint.address} "
            f"from offset {self._offset}"
        )

    def start(self) -> None:
        """Start the polling task. :meth:`open` must have succeeded first."""
        if self._file is None:
            raise RuntimeError(f"log for {self.endpoint.address} is not open")
        if self.running:
            logger.warning(f"Already tailing log for server {self.endpoint.address}")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._watch_loop())

    async def stop(self) -> None:
        """Stop polling and close the file handle."""
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._close()
        logger.info(f"Stopped tailing log for server {self.endpoint.address}")

    async def poll(self) -> int:
        """Read whatever was appended since the last poll and queue its lines.

        Returns:
            Number of bytes read
        """
        chunk = await self.read_new_bytes()
        if chunk:
            for line in self.split_lines(chunk):
                await self.channel.put(TailedLine(source=self.endpoint, line=line))
        return len(chunk)

    async def read_new_bytes(self) -> bytes:
        """Return the bytes between the tracked offset and the current end of file.

        A file that shrank or was replaced is read again from its start.

        Raises:
            TailerError: The file could not be inspected or read
        """
        try:
            stat = await aioos.stat(self.path)
        except OSError as e:
            raise TailerError(
                f"cannot stat log {self.path} for {self.endpoint.address}: {e}"
            ) from e

        if stat.st_ino != self._inode:
            logger.info(
                f"Log file replaced for {self.endpoint.address}, reading from beginning"
            )
            await self._reopen(stat.st_ino)
        elif stat.st_size < self._offset:
            logger.info(
                f"Log file truncated for {self.endpoint.address}, reading from beginning"
            )
            self._offset = 0
            self._partial = b""

        delta = stat.st_size - self._offset
        if delta <= 0:
            return b""

        try:
            await self._file.seek(self._offset)
            chunk = await self._file.read(delta)
        except (OSError, ValueError) as e:
            raise TailerError(
                f"cannot read log {self.path} for {self.endpoint.address}: {e}"
            ) from e

        self._offset += len(chunk)
        return chunk

    def split_lines(self, chunk: bytes) -> List[str]:
        """Split ``chunk`` into complete, non-blank lines.

        The trailing bytes after the last newline are kept and prefixed to the
        next chunk, so a line written across two polls is reported once.
        """
        *complete, self._partial = (self._partial + chunk).split(b"\n")

        lines = []
        for raw in complete:
            line = raw.decode("utf-8", errors="ignore").rstrip("\r")
            if line.strip():
                lines.append(line)
        return lines

    async def _watch_loop(self) -> None:
        # The poll watcher compares mtimes and can miss an append made within
        # the same timestamp tick, so the size is also checked on every timeout.
        poll_delay_ms = max(1, int(self.poll_interval * 1000))
        try:
            async for changes in awatch(
                self.path,
                watch_filter=None,
                force_polling=True,
                poll_delay_ms=poll_delay_ms,
                debounce=poll_delay_ms,
                rust_timeout=poll_delay_ms,
                yield_on_timeout=True,
                stop_event=self._stop_event,
            ):
                if changes and all(change == Change.deleted for change, _ in changes):
                    logger.info(f"Log file deleted for {self.endpoint.address}")
                    continue
                await self.poll()
        except asyncio.CancelledError:
            logger.debug(f"Tail loop cancelled for {self.endpoint.address}")
            raise
        except TailerError as e:
            self.error = e
            logger.error(f"Stopped tailing {self.endpoint.address}: {e}")
        except Exception as e:
            self.error = TailerError(str(e))
            logger.error(
                f"Error in tail loop for {self.endpoint.address}: {e}", exc_info=True
            )

    async def _reopen(self, inode: int) -> None:
        await self._close()
        try:
            self._file = await aiofiles.open(self.path, "rb")
        except OSError as e:
            raise TailerError(
                f"cannot reopen log {self.path} for {self.endpoint.address}: {e}"
            ) from e
        self._inode = inode
        self._offset = 0
        self._partial = b""

    async def _close(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None
