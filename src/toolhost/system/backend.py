"""SystemCommand protocol — the common interface for system command backends."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from toolhost.protocol.models import CallError, ErrorCode, ToolCallResult

if TYPE_CHECKING:
    from toolhost.system.models import KillProcessInput


@runtime_checkable
class SystemCommand(Protocol):
    """Inspects and controls the local machine.

    Every method returns a :class:`ToolCallResult` and never raises: failures
    such as a missing process, denied permission, or an unsupported OS become
    structured errors carrying the underlying message.
    """

    async def kill_process(self, input: KillProcessInput) -> ToolCallResult:
        """Kill a process by PID."""
        ...

    async def list_processes(self) -> ToolCallResult:
        """List all running processes."""
        ...

    async def get_memory_usage(self) -> ToolCallResult:
        """Report overall memory and swap usage."""
        ...

    async def get_disk_usage(self) -> ToolCallResult:
        """Report usage of every mounted filesystem."""
        ...

    async def list_ports(self) -> ToolCallResult:
        """List open network ports and connections."""
        ...


def command_failed(message: str, **data: Any) -> ToolCallResult:
    """Build a ``SYSTEM_COMMAND_FAILED`` result with *message* in its payload."""
    return ToolCallResult.failure(
        CallError(
            code=ErrorCode.SYSTEM_COMMAND_FAILED,
            message=message,
            data={"error": message, **data},
        )
    )


def refuse_kill(pid: int) -> ToolCallResult | None:
    """Return an error when killing *pid* would take down the server itself.

    On POSIX a pid of zero or below signals a whole process group, which
    includes the server.
    """
    if pid <= 0:
        return command_failed(f"Refusing to kill process group (pid={pid})")
    if pid == os.getpid():
        return command_failed(f"Refusing to kill the server process (pid={pid})")
    return None


def create_system_command(kind: str, *, command_timeout: float = 10.0) -> SystemCommand:
    """Construct the backend named *kind* (``native`` or ``external``)."""
    if kind == "native":
        from toolhost.system.native import NativeSystemCommand

        return NativeSystemCommand()
    if kind == "external":
        from toolhost.system.external import ExternalSystemCommand
        from toolhost.system.runner import CommandRunner

        return ExternalSystemCommand(CommandRunner(timeout=command_timeout))
    msg = f"Unknown system command backend: {kind!r}"
    raise ValueError(msg)
