"""Shared error types for toolhost."""

from __future__ import annotations

from typing import Any


class ToolhostError(Exception):
    """Base error for all toolhost failures."""


class ConnectionError(ToolhostError):
    """Failed to reach the tool server, or the connection dropped."""


class ProtocolError(ToolhostError):
    """A frame could not be parsed or had an unexpected shape."""


class ToolCallError(ToolhostError):
    """The server answered a request with an error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"[{code}] {message}")


class ToolRegistrationError(ToolhostError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class ServerNotRunningError(ToolhostError):
    """No live server owns the lock file."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Server is not running" + (f": {detail}" if detail else ""))


class ServerAlreadyRunningError(ToolhostError):
    """Another live server already owns the lock file."""

    def __init__(self, pid: int, port: int) -> None:
        self.pid = pid
        self.port = port
        super().__init__(f"Server is already running on port {port} (PID: {pid})")


class ConfigError(ToolhostError):
    """Configuration could not be loaded or validated."""


class CommandError(ToolhostError):
    """An external command could not be started."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Command error" + (f": {detail}" if detail else ""))


class CommandTimeoutError(CommandError):
    """An external command exceeded its timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Execution timed out after {timeout}s")


class LockFileError(ToolhostError):
    """The lock file could not be read or written."""


class LockNotFoundError(LockFileError):
    """The lock file does not exist."""


class LockParseError(LockFileError):
    """The lock file exists but does not hold a valid record."""
