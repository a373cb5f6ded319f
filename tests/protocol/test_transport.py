"""Tests for the TCP transport with mocked streams."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolhost.errors import ConnectionError, ProtocolError
from toolhost.protocol.models import RpcRequest, RpcResponse
from toolhost.protocol.transport import TcpTransport, Transport


class TestTransportProtocol:
    def test_tcp_satisfies_protocol(self) -> None:
        assert isinstance(TcpTransport(port=1), Transport)


class TestTcpTransport:
    async def test_connect_opens_connection(self) -> None:
        reader, writer = MagicMock(), MagicMock()
        with patch(
            "asyncio.open_connection", AsyncMock(return_value=(reader, writer))
        ) as mock_open:
            transport = TcpTransport(port=5555)
            await transport.connect()

        assert transport.connected
        assert mock_open.await_args.args == ("127.0.0.1", 5555)

    async def test_connect_refused_raises_connection_error(self) -> None:
        with patch("asyncio.open_connection", AsyncMock(side_effect=ConnectionRefusedError())):
            transport = TcpTransport(port=5555)
            with pytest.raises(ConnectionError, match="Cannot connect"):
                await transport.connect()

    async def test_send_writes_json_line(self) -> None:
        writer = MagicMock()
        writer.drain = AsyncMock()
        transport = TcpTransport(port=1)
        transport._writer = writer

        await transport.send(RpcRequest(id=1, method="ping"))

        written = writer.write.call_args[0][0]
        assert written.endswith(b"\n")
        assert json.loads(written) == {"jsonrpc": "2.0", "id": 1, "method": "ping", "params": {}}

    async def test_send_broken_pipe_raises_connection_error(self) -> None:
        writer = MagicMock()
        writer.drain = AsyncMock(side_effect=BrokenPipeError())
        transport = TcpTransport(port=1)
        transport._writer = writer

        with pytest.raises(ConnectionError):
            await transport.send(RpcRequest(id=1, method="ping"))

    async def test_receive_decodes_line(self) -> None:
        reader = MagicMock()
        reader.readline = AsyncMock(return_value=b'{"jsonrpc":"2.0","id":1,"result":{}}\n')
        transport = TcpTransport(port=1)
        transport._reader = reader

        message = await transport.receive()
        assert message == RpcResponse.success(1, {})

    async def test_receive_eof_raises(self) -> None:
        reader = MagicMock()
        reader.readline = AsyncMock(return_value=b"")
        transport = TcpTransport(port=1)
        transport._reader = reader

        with pytest.raises(ConnectionError, match="closed"):
            await transport.receive()

    async def test_receive_garbage_raises_protocol_error(self) -> None:
        reader = MagicMock()
        reader.readline = AsyncMock(return_value=b"garbage\n")
        transport = TcpTransport(port=1)
        transport._reader = reader

        with pytest.raises(ProtocolError):
            await transport.receive()

    async def test_send_without_connect_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            await TcpTransport(port=1).send(RpcRequest(id=1, method="ping"))

    async def test_close_shuts_down_writer(self) -> None:
        writer = MagicMock()
        writer.can_write_eof.return_value = True
        writer.wait_closed = AsyncMock()
        transport = TcpTransport(port=1)
        transport._writer = writer

        await transport.close()

        writer.write_eof.assert_called_once()
        writer.close.assert_called_once()
        assert not transport.connected
