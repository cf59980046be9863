"""Unix domain socket transport for the daemon's JSON-RPC interface."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections import deque
from contextlib import suppress
from typing import Protocol, Self

from lightningrpc.error import ConnectError, ConnectionLost, TransportError
from lightningrpc.wire import DEFAULT_MAX_FRAME_SIZE, FrameDecoder

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 64 * 1024


class Transport(Protocol):
    """Protocol for RPC transports."""

    async def open(self) -> None:
        """Open the connection.

        Raises:
            ConnectError: If the endpoint cannot be reached
        """
        ...

    async def send(self, data: bytes) -> None:
        """Send data over the transport.

        Raises:
            TransportError: If sending fails
        """
        ...

    async def receive(self) -> bytes:
        """Receive exactly one frame.

        Raises:
            TransportError: If receiving fails
            ConnectionLost: If the peer closed the connection
        """
        ...

    async def close(self) -> None:
        """Close the transport connection."""
        ...


async def _open_unix_connection(
    path: str,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    try:
        return await asyncio.open_unix_connection(path)
    except OSError as e:
        if sys.platform != "linux" or "path too long" not in str(e):
            raise

    # sun_path is ~108 bytes on Linux; reach the socket through a short
    # /proc/self/fd alias of its directory instead.
    dirfd = os.open(os.path.dirname(path) or ".", os.O_DIRECTORY | os.O_RDONLY)
    try:
        short_path = f"/proc/self/fd/{dirfd}/{os.path.basename(path)}"
        return await asyncio.open_unix_connection(short_path)
    finally:
        os.close(dirfd)


class UnixSocketTransport:
    """Stream transport over a Unix domain socket.

    Incoming bytes are split into frames at JSON value boundaries, so the
    daemon is not required to delimit its responses.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        """Initialize the transport.

        Args:
            path: Filesystem path of the daemon's socket
            max_frame_size: Largest single response accepted, in bytes
            read_size: Bytes requested per socket read
        """
        self.path = os.fspath(path)
        self.max_frame_size = max_frame_size
        self.read_size = read_size
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._decoder = FrameDecoder(max_frame_size)
        self._frames: deque[bytes] = deque()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    async def open(self) -> None:
        """Connect to the socket. No-op if already connected.

        Raises:
            ConnectError: If the socket is missing, refuses, or is unreachable
        """
        if self._writer is not None:
            return

        try:
            self._reader, self._writer = await _open_unix_connection(self.path)
        except FileNotFoundError as e:
            msg = f"No daemon socket at {self.path}"
            raise ConnectError(msg, self.path) from e
        except ConnectionRefusedError as e:
            msg = f"Connection to {self.path} refused"
            raise ConnectError(msg, self.path) from e
        except OSError as e:
            msg = f"Could not connect to {self.path}: {e}"
            raise ConnectError(msg, self.path) from e

        # Each connection starts with a clean stream.
        self._decoder = FrameDecoder(self.max_frame_size)
        self._frames.clear()
        logger.debug("Connected to %s", self.path)

    async def send(self, data: bytes) -> None:
        """Write data to the socket.

        Raises:
            TransportError: If the transport is not open or the write fails
        """
        if self._writer is None:
            msg = "Transport not open"
            raise TransportError(msg)

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            msg = f"Write to {self.path} failed: {e}"
            raise TransportError(msg) from e

    async def receive(self) -> bytes:
        """Read until one complete JSON value is available and return it.

        Raises:
            TransportError: If the transport is not open or the read fails
            ConnectionLost: If the daemon closed the connection
            MalformedResponse: If the stream cannot be framed
        """
        if self._reader is None:
            msg = "Transport not open"
            raise TransportError(msg)

        while not self._frames:
            try:
                chunk = await self._reader.read(self.read_size)
            except OSError as e:
                msg = f"Read from {self.path} failed: {e}"
                raise TransportError(msg) from e

            if not chunk:
                if self._decoder.has_partial:
                    msg = f"Connection to {self.path} closed in the middle of a response"
                else:
                    msg = f"Connection to {self.path} closed by the daemon"
                raise ConnectionLost(msg)

            self._frames.extend(self._decoder.feed(chunk))

        return self._frames.popleft()

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is None:
            return

        writer.close()
        with suppress(OSError):
            await writer.wait_closed()
        logger.debug("Closed connection to %s", self.path)
