"""Line-oriented transports for JSON-RPC communication.

Each transport satisfies the :class:`Transport` protocol, providing
``connect``, ``send``, ``receive``, and ``close`` methods.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from toolhost.errors import ConnectionError
from toolhost.protocol import codec
from toolhost.protocol.models import RpcMessage

# Frames are single lines; allow large tool payloads (process lists).
STREAM_LIMIT = 16 * 1024 * 1024


@runtime_checkable
class Transport(Protocol):
    """Abstract transport for JSON-RPC messages."""

    async def connect(self) -> None: ...
    async def send(self, message: RpcMessage) -> None: ...
    async def receive(self) -> RpcMessage: ...
    async def close(self) -> None: ...


class TcpTransport:
    """Communicates with the tool server over a loopback TCP socket.

    Sends and receives newline-delimited JSON.
    """

    def __init__(self, port: int, host: str = "127.0.0.1") -> None:
        self._host = host
        self._port = port
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None

    async def connect(self) -> None:
        """Open the TCP connection."""
        try:
            self._reader, self._writer = await asyncio.open_connection(
                self._host, self._port, limit=STREAM_LIMIT
            )
        except OSError as exc:
            msg = f"Cannot connect to server at {self._host}:{self._port}: {exc}"
            raise ConnectionError(msg) from exc

    async def send(self, message: RpcMessage) -> None:
        """Write one JSON line."""
        if self._writer is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        try:
            self._writer.write(codec.encode(message))
            await self._writer.drain()
        except OSError as exc:
            raise ConnectionError(f"Connection lost while sending: {exc}") from exc

    async def receive(self) -> RpcMessage:
        """Read and decode one JSON line.

        Raises:
            ConnectionError: If the server closed the connection.
            ProtocolError: If the line is not a valid message.
        """
        if self._reader is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        try:
            line = await self._reader.readline()
        except (OSError, ValueError) as exc:
            raise ConnectionError(f"Connection lost while receiving: {exc}") from exc
        if not line:
            msg = "Transport closed by server"
            raise ConnectionError(msg)
        return codec.decode(line)

    async def close(self) -> None:
        """Shut the socket down in both directions and close it."""
        if self._writer is not None:
            writer = self._writer
            self._writer = None
            self._reader = None
            if writer.can_write_eof():
                try:
                    writer.write_eof()
                except OSError:
                    pass
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
