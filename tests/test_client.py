"""Tests for ToolClient against a live server and with a mocked transport."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolhost.client import ToolClient, result_text
from toolhost.errors import ConnectionError, ProtocolError, ServerNotRunningError, ToolCallError
from toolhost.lockfile import LockFileManager
from toolhost.protocol.models import CallError, ErrorCode, RpcNotification, RpcResponse
from toolhost.server import ToolServer


class TestDiscover:
    def test_no_lock_raises(self, lock: LockFileManager) -> None:
        with pytest.raises(ServerNotRunningError, match="toolhost start"):
            ToolClient.discover(lock)

    async def test_uses_recorded_port(self, server: ToolServer, lock: LockFileManager) -> None:
        assert ToolClient.discover(lock).port == server.port


class TestLiveServer:
    async def test_handshake_records_server_info(self, server: ToolServer) -> None:
        async with ToolClient(server.port) as client:
            assert client.server_info is not None
            assert client.server_info.server_info.name == "toolhost"

    async def test_list_tools(self, server: ToolServer) -> None:
        async with ToolClient(server.port) as client:
            tools = await client.list_tools()
        assert "echo_message" in {t.name for t in tools}

    async def test_call_tool(self, server: ToolServer) -> None:
        async with ToolClient(server.port) as client:
            result = await client.call_tool("get_weather", {"location": "Oslo"})
        assert result_text(result) == "The weather in Oslo is sunny."

    async def test_error_raises_and_connection_survives(self, server: ToolServer) -> None:
        async with ToolClient(server.port) as client:
            with pytest.raises(ToolCallError) as excinfo:
                await client.call_tool("kill_process", {"pid": 999999})
            assert excinfo.value.code == ErrorCode.SYSTEM_COMMAND_FAILED

            await client.ping()
            result = await client.call_tool("echo_message", {"message": "still here"})
        assert result["structuredContent"] == "Echoing: still here"

    async def test_without_handshake_tools_are_refused(self, server: ToolServer) -> None:
        async with ToolClient(server.port, handshake=False) as client:
            await client.ping()
            with pytest.raises(ToolCallError) as excinfo:
                await client.list_tools()
        assert excinfo.value.code == ErrorCode.NOT_INITIALIZED

    async def test_connect_refused(self, server: ToolServer) -> None:
        port = server.port
        await server.close()
        with pytest.raises(ConnectionError):
            async with ToolClient(port):
                pass


class TestMockedTransport:
    def _client(self, *replies: object) -> tuple[ToolClient, MagicMock]:
        transport = MagicMock()
        transport.connect = AsyncMock()
        transport.send = AsyncMock()
        transport.close = AsyncMock()
        transport.receive = AsyncMock(side_effect=list(replies))
        client = ToolClient(1, handshake=False)
        client._transport = transport
        return client, transport

    async def test_mismatched_id_raises(self) -> None:
        client, _ = self._client(RpcResponse.success(99, {}))
        with pytest.raises(ProtocolError, match="does not match"):
            await client.ping()

    async def test_non_response_raises(self) -> None:
        client, _ = self._client(RpcNotification(method="x"))
        with pytest.raises(ProtocolError, match="Expected a response"):
            await client.ping()

    async def test_request_ids_increase(self) -> None:
        client, transport = self._client(RpcResponse.success(1, {}), RpcResponse.success(2, {}))
        await client.ping()
        await client.ping()
        ids = [call.args[0].id for call in transport.send.await_args_list]
        assert ids == [1, 2]

    async def test_bad_tools_list_payload_raises(self) -> None:
        client, _ = self._client(RpcResponse.success(1, {"tools": [{"description": "no name"}]}))
        with pytest.raises(ProtocolError):
            await client.list_tools()

    async def test_context_manager_uses_created_transport(self) -> None:
        transport = MagicMock()
        transport.connect = AsyncMock()
        transport.close = AsyncMock()
        with patch.object(ToolClient, "_create_transport", return_value=transport):
            async with ToolClient(1, handshake=False):
                transport.connect.assert_awaited_once()
        transport.close.assert_awaited_once()

    @pytest.mark.parametrize(
        ("reply", "error"),
        [
            (
                RpcResponse.failure(1, CallError(code=ErrorCode.INTERNAL, message="boom")),
                ToolCallError,
            ),
            (RpcResponse.success(1, {"unexpected": True}), ProtocolError),
        ],
    )
    async def test_failed_handshake_closes_transport(
        self, reply: RpcResponse, error: type[Exception]
    ) -> None:
        transport = MagicMock()
        transport.connect = AsyncMock()
        transport.send = AsyncMock()
        transport.close = AsyncMock()
        transport.receive = AsyncMock(return_value=reply)
        client = ToolClient(1)
        with patch.object(ToolClient, "_create_transport", return_value=transport):
            with pytest.raises(error):
                async with client:
                    pytest.fail("handshake should not succeed")

        transport.close.assert_awaited_once()
        assert client._transport is None

    async def test_call_before_connect_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            await ToolClient(1).ping()


class TestResultText:
    def test_joins_text_items(self) -> None:
        result = {"content": [{"type": "text", "text": "a"}, {"type": "image"}, {"type": "text", "text": "b"}]}
        assert result_text(result) == "a\nb"

    def test_falls_back_to_repr(self) -> None:
        assert result_text({"x": 1}) == "{'x': 1}"
