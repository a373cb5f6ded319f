"""Tests for per-connection protocol state."""

from __future__ import annotations

from typing import Any

from toolhost import __version__
from toolhost.protocol.models import ErrorCode, RpcNotification, RpcRequest, RpcResponse
from toolhost.server import Session, SessionState
from toolhost.tools.router import ToolRouter

INIT_PARAMS: dict[str, Any] = {
    "protocolVersion": "2024-11-05",
    "capabilities": {},
    "clientInfo": {"name": "test", "version": "1.0"},
}


async def _ready_session(router: ToolRouter) -> Session:
    session = Session(router, "test")
    await session.handle(RpcRequest(id=0, method="initialize", params=INIT_PARAMS))
    await session.handle(RpcNotification(method="notifications/initialized"))
    return session


class TestHandshake:
    async def test_initialize_returns_server_info(self, router: ToolRouter) -> None:
        session = Session(router)
        response = await session.handle(RpcRequest(id=1, method="initialize", params=INIT_PARAMS))

        assert response is not None
        assert response.result["serverInfo"] == {"name": "toolhost", "version": __version__}
        assert response.result["capabilities"] == {"tools": {}}
        assert response.result["protocolVersion"] == "2024-11-05"
        assert session.state is SessionState.HANDSHAKING

    async def test_initialized_notification_makes_ready(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        assert session.state is SessionState.READY
        assert session.client_info is not None
        assert session.client_info.name == "test"

    async def test_initialized_before_initialize_is_ignored(self, router: ToolRouter) -> None:
        session = Session(router)
        response = await session.handle(RpcNotification(method="notifications/initialized"))
        assert response is None
        assert session.state is SessionState.HANDSHAKING

    async def test_tools_list_before_handshake_is_rejected(self, router: ToolRouter) -> None:
        session = Session(router)
        response = await session.handle(RpcRequest(id=1, method="tools/list"))

        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.NOT_INITIALIZED

    async def test_tools_call_between_initialize_and_initialized_is_rejected(
        self, router: ToolRouter
    ) -> None:
        session = Session(router)
        await session.handle(RpcRequest(id=1, method="initialize", params=INIT_PARAMS))
        response = await session.handle(
            RpcRequest(id=2, method="tools/call", params={"name": "echo", "arguments": {}})
        )
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.NOT_INITIALIZED

    async def test_second_initialize_is_invalid_request(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(RpcRequest(id=5, method="initialize", params=INIT_PARAMS))
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.INVALID_REQUEST
        assert session.state is SessionState.READY

    async def test_initialize_without_client_info_is_invalid_params(self, router: ToolRouter) -> None:
        response = await Session(router).handle(RpcRequest(id=1, method="initialize", params={}))
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.INVALID_PARAMS


class TestRequests:
    async def test_ping_works_before_handshake(self, router: ToolRouter) -> None:
        response = await Session(router).handle(RpcRequest(id=9, method="ping"))
        assert response == RpcResponse.success(9, {})

    async def test_unknown_method(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(RpcRequest(id=3, method="resources/list"))
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.METHOD_NOT_FOUND

    async def test_tools_list(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(RpcRequest(id=3, method="tools/list"))

        assert response is not None
        tools = response.result["tools"]
        assert {"name", "description", "inputSchema"} <= set(tools[0])
        assert len(tools) == len(router)

    async def test_tools_call_success(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(
            RpcRequest(
                id="c1",
                method="tools/call",
                params={"name": "echo_message", "arguments": {"message": "hi"}},
            )
        )
        assert response is not None
        assert response.id == "c1"
        assert response.result["content"] == [{"type": "text", "text": "Echoing: hi"}]
        assert response.result["isError"] is False

    async def test_tools_call_unknown_tool(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(
            RpcRequest(id=4, method="tools/call", params={"name": "nope", "arguments": {}})
        )
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.METHOD_NOT_FOUND

    async def test_tools_call_without_name(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        response = await session.handle(RpcRequest(id=4, method="tools/call", params={}))
        assert response is not None
        assert response.error is not None
        assert response.error.code == ErrorCode.INVALID_PARAMS

    async def test_response_frames_are_ignored(self, router: ToolRouter) -> None:
        session = await _ready_session(router)
        assert await session.handle(RpcResponse.success(1, {})) is None
