"""ToolClient — connects to the local tool server and drives it.

Implements the handshake (``initialize`` then ``notifications/initialized``),
tool discovery (``tools/list``) and execution (``tools/call``) over a
:class:`~toolhost.protocol.transport.Transport`.
"""

from __future__ import annotations

import logging
from typing import Any, cast

from toolhost import __version__
from toolhost.errors import ProtocolError, ServerNotRunningError
from toolhost.lockfile import LockFileManager
from toolhost.protocol.models import (
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_PING,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    PROTOCOL_VERSION,
    InitializeResult,
    RpcNotification,
    RpcRequest,
    RpcResponse,
    ToolDescriptor,
)
from toolhost.protocol.transport import TcpTransport, Transport

logger = logging.getLogger(__name__)

CLIENT_NAME = "toolhost-client"


class ToolClient:
    """Async context manager that connects to a running tool server.

    Usage::

        async with ToolClient.discover(LockFileManager()) as client:
            tools = await client.list_tools()
            result = await client.call_tool("echo_message", {"message": "hi"})

    Server-reported errors surface as :class:`~toolhost.errors.ToolCallError`
    and leave the connection usable.
    """

    def __init__(self, port: int, *, host: str = "127.0.0.1", handshake: bool = True) -> None:
        self._host = host
        self._port = port
        self._handshake = handshake
        self._transport: Transport | None = None
        self._next_id = 1
        self.server_info: InitializeResult | None = None

    @classmethod
    def discover(cls, lock: LockFileManager, *, host: str = "127.0.0.1") -> ToolClient:
        """Build a client for the server recorded in the live lock file."""
        record = lock.server_is_running()
        if record is None:
            raise ServerNotRunningError("start it first with 'toolhost start'")
        return cls(record.port, host=host)

    @property
    def port(self) -> int:
        return self._port

    async def __aenter__(self) -> ToolClient:
        await self.connect()
        if self._handshake:
            try:
                await self.initialize()
                await self.initialized_notification()
            except BaseException:
                await self.close()
                raise
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the TCP connection.

        Raises:
            ConnectionError: If the server refuses the connection.
        """
        self._transport = self._create_transport()
        await self._transport.connect()
        logger.debug("Client connected to %s:%d", self._host, self._port)

    async def close(self) -> None:
        """Shut the connection down in both directions."""
        if self._transport is not None:
            await self._transport.close()
            self._transport = None

    async def initialize(self) -> InitializeResult:
        """Send ``initialize`` and wait for the server's capabilities."""
        result = await self._send_request(
            METHOD_INITIALIZE,
            params={
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"roots": {"listChanged": True}},
                "clientInfo": {"name": CLIENT_NAME, "version": __version__},
            },
        )
        try:
            self.server_info = InitializeResult.model_validate(result)
        except ValueError as exc:
            raise ProtocolError(f"Invalid initialize result: {exc}") from exc
        return self.server_info

    async def initialized_notification(self) -> None:
        """Send ``notifications/initialized``; no response is expected."""
        await self._require_transport().send(RpcNotification(method=METHOD_INITIALIZED))

    async def ping(self) -> None:
        await self._send_request(METHOD_PING)

    async def list_tools(self) -> list[ToolDescriptor]:
        """Send ``tools/list`` and parse the descriptors."""
        result = await self._send_request(METHOD_TOOLS_LIST)
        raw_tools = cast("list[dict[str, Any]]", (result or {}).get("tools", []))
        try:
            return [ToolDescriptor.model_validate(raw) for raw in raw_tools]
        except ValueError as exc:
            raise ProtocolError(f"Invalid tools/list result: {exc}") from exc

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send ``tools/call`` and return the raw result object.

        Raises:
            ToolCallError: If the server reports an error for the call.
        """
        result = await self._send_request(
            METHOD_TOOLS_CALL,
            params={"name": name, "arguments": arguments or {}},
        )
        if not isinstance(result, dict):
            raise ProtocolError(f"Invalid tools/call result: {result!r}")
        return result

    def _create_transport(self) -> Transport:
        return TcpTransport(self._port, host=self._host)

    def _require_transport(self) -> Transport:
        if self._transport is None:
            msg = "Client not connected"
            raise RuntimeError(msg)
        return self._transport

    async def _send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a request and wait for exactly one response line."""
        transport = self._require_transport()

        request_id = self._next_id
        self._next_id += 1

        await transport.send(RpcRequest(id=request_id, method=method, params=params or {}))
        message = await transport.receive()
        if not isinstance(message, RpcResponse):
            raise ProtocolError(f"Expected a response to {method}, got {type(message).__name__}")
        if message.id != request_id:
            raise ProtocolError(f"Response id {message.id!r} does not match request id {request_id}")
        if message.error is not None:
            raise message.error.as_exception()
        return message.result


def result_text(result: dict[str, Any]) -> str:
    """Extract text from a ``tools/call`` result."""
    content = cast("list[dict[str, Any]]", result.get("content", []))
    parts = [str(item.get("text", "")) for item in content if item.get("type") == "text"]
    return "\n".join(parts) if parts else str(result)
