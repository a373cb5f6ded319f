"""JSON-RPC 2.0 messages and MCP-style payloads.

The wire format is one JSON object per line.  Three message shapes travel
over a connection:

* :class:`RpcRequest` — has ``id`` and ``method``; always answered.
* :class:`RpcNotification` — has ``method`` but no ``id``; never answered.
* :class:`RpcResponse` — has ``id`` and exactly one of ``result``/``error``.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from toolhost.errors import ToolCallError

PROTOCOL_VERSION = "2024-11-05"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_PING = "ping"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"


class ErrorCode(IntEnum):
    """Error codes carried in :class:`CallError`."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL = -32603
    NOT_INITIALIZED = -32002
    SYSTEM_COMMAND_FAILED = -32000


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class CallError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None

    @classmethod
    def method_not_found(cls, name: str) -> CallError:
        return cls(code=ErrorCode.METHOD_NOT_FOUND, message=f"Method not found: {name}")

    @classmethod
    def invalid_params(cls, message: str, data: Any = None) -> CallError:
        return cls(code=ErrorCode.INVALID_PARAMS, message=message, data=data)

    @classmethod
    def internal(cls, message: str, data: Any = None) -> CallError:
        return cls(code=ErrorCode.INTERNAL, message=message, data=data)

    def as_exception(self) -> ToolCallError:
        """Convert to the client-side exception."""
        return ToolCallError(self.code, self.message, self.data)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            wire["data"] = self.data
        return wire


class RpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class RpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (no ``id``, no response)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None


class RpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    ``id`` is ``None`` only for errors about a frame that could not be
    parsed far enough to recover its id.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None
    result: Any = None
    error: CallError | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> RpcResponse:
        if self.error is not None and self.result is not None:
            msg = "Response carries both result and error"
            raise ValueError(msg)
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, request_id: int | str | None, result: Any) -> RpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: int | str | None, error: CallError) -> RpcResponse:
        return cls(id=request_id, error=error)


RpcMessage = RpcRequest | RpcNotification | RpcResponse


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class ToolDescriptor(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = {"populate_by_name": True}

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Implementation(BaseModel):
    """Name/version pair exchanged during ``initialize``."""

    name: str
    version: str


class InitializeParams(BaseModel):
    """Parameters of the ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation = Field(alias="clientInfo")


class InitializeResult(BaseModel):
    """Result of the ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=lambda: {"tools": {}})
    server_info: Implementation = Field(alias="serverInfo")


class CallToolParams(BaseModel):
    """Parameters of the ``tools/call`` request."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    """Outcome of one tool invocation: a success value or a :class:`CallError`."""

    value: Any = None
    error: CallError | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> ToolCallResult:
        if self.error is not None and self.value is not None:
            msg = "ToolCallResult carries both a value and an error"
            raise ValueError(msg)
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> ToolCallResult:
        return cls(value=value)

    @classmethod
    def failure(cls, error: CallError) -> ToolCallResult:
        return cls(error=error)

    def to_wire(self) -> dict[str, Any]:
        """Render a success as an MCP ``tools/call`` result."""
        if self.error is not None:
            msg = "Error results are sent as JSON-RPC errors"
            raise ValueError(msg)
        text = self.value if isinstance(self.value, str) else json.dumps(self.value)
        return {
            "content": [{"type": "text", "text": text}],
            "structuredContent": self.value,
            "isError": False,
        }
