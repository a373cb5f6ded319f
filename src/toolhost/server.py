"""ToolServer — serves the tool router over loopback TCP.

The server binds an ephemeral port, records ``{pid, port}`` in the lock
file, then accepts connections until closed.  Each connection runs in its
own task and moves through the :class:`SessionState` handshake states;
requests on one connection are answered in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from toolhost import __version__
from toolhost.errors import LockFileError, ProtocolError, ServerAlreadyRunningError
from toolhost.lockfile import LockFileManager, LockRecord
from toolhost.protocol import codec
from toolhost.protocol.models import (
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_PING,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    CallError,
    CallToolParams,
    ErrorCode,
    Implementation,
    InitializeParams,
    InitializeResult,
    RpcNotification,
    RpcRequest,
    RpcResponse,
)
from toolhost.protocol.transport import STREAM_LIMIT
from toolhost.utils.telemetry import ATTR_PEER, ATTR_RPC_METHOD, get_tracer

if TYPE_CHECKING:
    from toolhost.tools.router import ToolRouter

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

SERVER_NAME = "toolhost"


class SessionState(str, Enum):
    ACCEPTED = "accepted"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"


class Session:
    """Protocol state for one client connection.

    ``handle`` consumes one decoded message and returns the response to
    send, or ``None`` for notifications.
    """

    def __init__(self, router: ToolRouter, peer: str = "?") -> None:
        self.router = router
        self.peer = peer
        self.state = SessionState.ACCEPTED
        self.client_info: Implementation | None = None

    async def handle(self, message: RpcRequest | RpcNotification | RpcResponse) -> RpcResponse | None:
        if self.state is SessionState.ACCEPTED:
            self.state = SessionState.HANDSHAKING
        if isinstance(message, RpcNotification):
            self._on_notification(message)
            return None
        if isinstance(message, RpcResponse):
            # The server never issues requests, so there is nothing to match.
            logger.debug("Ignoring response frame from %s (id=%s)", self.peer, message.id)
            return None

        with _tracer.start_as_current_span("toolhost.rpc.request") as span:
            span.set_attribute(ATTR_RPC_METHOD, message.method)
            span.set_attribute(ATTR_PEER, self.peer)
            try:
                result = await self._on_request(message)
            except _RequestFailed as exc:
                return RpcResponse.failure(message.id, exc.error)
            return RpcResponse.success(message.id, result)

    def _on_notification(self, message: RpcNotification) -> None:
        if message.method == METHOD_INITIALIZED:
            if self.state is SessionState.HANDSHAKING and self.client_info is not None:
                self.state = SessionState.READY
                logger.debug("Session %s ready", self.peer)
            else:
                logger.warning(
                    "Unexpected %s from %s in state %s", message.method, self.peer, self.state.value
                )
            return
        logger.debug("Ignoring notification %s from %s", message.method, self.peer)

    async def _on_request(self, request: RpcRequest) -> Any:
        method = request.method
        if method == METHOD_PING:
            return {}
        if method == METHOD_INITIALIZE:
            return self._initialize(request.params)
        if method in (METHOD_TOOLS_LIST, METHOD_TOOLS_CALL):
            if self.state is not SessionState.READY:
                raise _RequestFailed(
                    CallError(
                        code=ErrorCode.NOT_INITIALIZED,
                        message=f"Session not initialized; {method} requires a completed handshake",
                    )
                )
            if method == METHOD_TOOLS_LIST:
                return {"tools": [d.to_wire() for d in self.router.list()]}
            return await self._call_tool(request.params)
        raise _RequestFailed(CallError.method_not_found(method))

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.client_info is not None:
            raise _RequestFailed(
                CallError(code=ErrorCode.INVALID_REQUEST, message="Session already initialized")
            )
        try:
            init = InitializeParams.model_validate(params)
        except ValidationError as exc:
            raise _RequestFailed(
                CallError.invalid_params("Invalid initialize parameters", data=str(exc))
            ) from exc

        self.client_info = init.client_info
        logger.info(
            "Client %s %s connected from %s", init.client_info.name, init.client_info.version, self.peer
        )
        result = InitializeResult(
            protocol_version=init.protocol_version,
            server_info=Implementation(name=SERVER_NAME, version=__version__),
        )
        return result.model_dump(by_alias=True)

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            call = CallToolParams.model_validate(params)
        except ValidationError as exc:
            raise _RequestFailed(
                CallError.invalid_params("Invalid tools/call parameters", data=str(exc))
            ) from exc

        result = await self.router.dispatch(call.name, call.arguments)
        if result.error is not None:
            raise _RequestFailed(result.error)
        return result.to_wire()


class _RequestFailed(Exception):
    def __init__(self, error: CallError) -> None:
        self.error = error
        super().__init__(error.message)


class ToolServer:
    """Loopback TCP server owning the lock file for its lifetime.

    Usage::

        server = ToolServer(router, LockFileManager())
        await server.start()
        await server.serve_forever()
    """

    def __init__(
        self,
        router: ToolRouter,
        lock: LockFileManager,
        *,
        host: str = "127.0.0.1",
        idle_timeout: float | None = None,
    ) -> None:
        self._router = router
        self._lock = lock
        self._host = host
        self._idle_timeout = idle_timeout
        self._server: asyncio.Server | None = None
        self._port: int | None = None
        self._record: LockRecord | None = None
        self._closed = asyncio.Event()
        self._connections: set[asyncio.Task[None]] = set()

    @property
    def port(self) -> int:
        if self._port is None:
            msg = "Server not started"
            raise RuntimeError(msg)
        return self._port

    async def start(self) -> LockRecord:
        """Bind an ephemeral port and claim the lock file.

        Raises:
            ServerAlreadyRunningError: If another live server holds the lock,
                either before we bind or when we try to claim it.
            LockFileError: If the lock file cannot be written.
        """
        existing = self._lock.server_is_running()
        if existing is not None:
            raise ServerAlreadyRunningError(existing.pid, existing.port)

        self._server = await asyncio.start_server(
            self._on_connect, self._host, 0, limit=STREAM_LIMIT
        )
        self._port = self._server.sockets[0].getsockname()[1]
        record = LockRecord(pid=os.getpid(), port=self._port)

        try:
            holder = self._lock.acquire(record)
        except Exception:
            await self._shutdown_listener()
            raise
        if holder is not None:
            await self._shutdown_listener()
            raise ServerAlreadyRunningError(holder.pid, holder.port)

        self._record = record
        logger.info("Server listening on %s:%d (PID: %d)", self._host, self._port, record.pid)
        return record

    async def serve_forever(self) -> None:
        """Accept connections until :meth:`close` is called or the task is cancelled."""
        if self._server is None:
            await self.start()
        try:
            await self._closed.wait()
        except asyncio.CancelledError:
            logger.info("Server shutting down")
            raise
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop accepting, drop open connections, and release the lock file."""
        self._closed.set()
        await self._shutdown_listener()

        if self._record is not None:
            try:
                current = self._lock.read()
            except LockFileError:
                current = None
            if current == self._record:
                self._lock.remove()
            self._record = None

    async def _shutdown_listener(self) -> None:
        if self._server is None:
            return
        server = self._server
        self._server = None
        server.close()
        for task in list(self._connections):
            task.cancel()
        if self._connections:
            await asyncio.gather(*self._connections, return_exceptions=True)
        await server.wait_closed()

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._connections.add(task)
        try:
            await self.handle_connection(reader, writer)
        finally:
            if task is not None:
                self._connections.discard(task)

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Serve one connection until EOF, a decode error, or idle timeout."""
        peername = writer.get_extra_info("peername")
        peer = f"{peername[0]}:{peername[1]}" if peername else "?"
        session = Session(self._router, peer)
        logger.debug("Accepted connection from %s", peer)

        try:
            while True:
                try:
                    line = await asyncio.wait_for(reader.readline(), timeout=self._idle_timeout)
                except TimeoutError:
                    logger.info("Closing idle connection from %s", peer)
                    break
                except ValueError as exc:
                    # StreamReader raises ValueError when a line exceeds the limit.
                    logger.warning("Dropping connection from %s: %s", peer, exc)
                    break
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    message = codec.decode(line)
                except ProtocolError as exc:
                    logger.warning("Malformed frame from %s: %s", peer, exc)
                    error = CallError(code=ErrorCode.PARSE_ERROR, message=str(exc))
                    await self._send(writer, RpcResponse.failure(codec.request_id_of(line), error))
                    break

                response = await session.handle(message)
                if response is not None:
                    await self._send(writer, response)
        except (ConnectionResetError, BrokenPipeError) as exc:
            logger.debug("Connection from %s lost: %s", peer, exc)
        finally:
            session.state = SessionState.CLOSED
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            logger.debug("Client %s disconnected", peer)

    @staticmethod
    async def _send(writer: asyncio.StreamWriter, response: RpcResponse) -> None:
        writer.write(codec.encode(response))
        await writer.drain()
