"""Protocol layer — JSON-RPC messages, line codec, and TCP transport."""

from toolhost.protocol.codec import decode, encode
from toolhost.protocol.models import (
    PROTOCOL_VERSION,
    CallError,
    CallToolParams,
    ErrorCode,
    Implementation,
    InitializeParams,
    InitializeResult,
    RpcMessage,
    RpcNotification,
    RpcRequest,
    RpcResponse,
    ToolCallResult,
    ToolDescriptor,
)
from toolhost.protocol.transport import TcpTransport, Transport

__all__ = [
    "PROTOCOL_VERSION",
    "CallError",
    "CallToolParams",
    "ErrorCode",
    "Implementation",
    "InitializeParams",
    "InitializeResult",
    "RpcMessage",
    "RpcNotification",
    "RpcRequest",
    "RpcResponse",
    "TcpTransport",
    "ToolCallResult",
    "ToolDescriptor",
    "Transport",
    "decode",
    "encode",
]
