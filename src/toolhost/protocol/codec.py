"""Newline-delimited JSON framing for :data:`RpcMessage` values."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from toolhost.errors import ProtocolError
from toolhost.protocol.models import (
    RpcMessage,
    RpcNotification,
    RpcRequest,
    RpcResponse,
)


def encode(message: RpcMessage) -> bytes:
    """Serialize *message* as one compact JSON line terminated by ``\\n``."""
    return (json.dumps(to_wire(message), separators=(",", ":")) + "\n").encode("utf-8")


def to_wire(message: RpcMessage) -> dict[str, Any]:
    """Return the wire dict for *message* (optional members omitted)."""
    if isinstance(message, RpcRequest):
        return {
            "jsonrpc": message.jsonrpc,
            "id": message.id,
            "method": message.method,
            "params": message.params,
        }
    if isinstance(message, RpcNotification):
        wire: dict[str, Any] = {"jsonrpc": message.jsonrpc, "method": message.method}
        if message.params is not None:
            wire["params"] = message.params
        return wire
    if message.error is not None:
        return {"jsonrpc": message.jsonrpc, "id": message.id, "error": message.error.to_wire()}
    return {"jsonrpc": message.jsonrpc, "id": message.id, "result": message.result}


def decode(line: bytes | str) -> RpcMessage:
    """Parse one line into a request, notification, or response.

    Raises:
        ProtocolError: On malformed JSON or a shape matching no message kind.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"Frame is not valid UTF-8: {exc}") from exc

    try:
        raw: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Malformed JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ProtocolError("Frame must be a JSON object")

    return from_wire(raw)


def from_wire(raw: dict[str, Any]) -> RpcMessage:
    """Classify and validate an already-parsed wire dict."""
    try:
        if "method" in raw:
            if "id" in raw:
                return RpcRequest.model_validate(raw)
            return RpcNotification.model_validate(raw)
        if "id" in raw and ("result" in raw) != ("error" in raw):
            if raw.get("error", {}) is None:
                raise ProtocolError("Response error must be an object")
            return RpcResponse.model_validate(raw)
    except ValidationError as exc:
        raise ProtocolError(f"Invalid message: {exc.errors(include_url=False)}") from exc

    raise ProtocolError(f"Frame matches no known message shape: {sorted(raw)}")


def request_id_of(line: bytes | str) -> int | str | None:
    """Best-effort recovery of a request id from a frame that failed to decode."""
    try:
        raw = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(raw, dict) and isinstance(raw.get("id"), (int, str)):
        return raw["id"]
    return None
