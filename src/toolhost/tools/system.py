"""Tools that expose a :class:`SystemCommand` backend."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from toolhost.protocol.models import ToolCallResult
from toolhost.system.backend import SystemCommand
from toolhost.system.models import KillProcessInput, NoInput
from toolhost.tools.base import Tool


class SystemCommandTool(Tool):
    """Forwards one backend operation as a tool."""

    def __init__(
        self,
        name: str,
        description: str,
        input_model: type[BaseModel],
        call: Callable[[Any], Awaitable[ToolCallResult]],
    ) -> None:
        # Instance attributes shadow the ClassVar declarations on Tool.
        self.name = name  # type: ignore[misc]
        self.description = description  # type: ignore[misc]
        self.input_model = input_model  # type: ignore[misc]
        self._call = call

    async def run(self, arguments: Any) -> ToolCallResult:
        return await self._call(arguments)


def build_system_tools(backend: SystemCommand) -> list[Tool]:
    """Return the five system tools bound to *backend*."""
    return [
        SystemCommandTool(
            "kill_process", "Kills a process by PID.", KillProcessInput, backend.kill_process
        ),
        SystemCommandTool(
            "list_processes",
            "Lists all running processes.",
            NoInput,
            lambda _: backend.list_processes(),
        ),
        SystemCommandTool(
            "get_memory_usage",
            "Reports overall memory and swap usage.",
            NoInput,
            lambda _: backend.get_memory_usage(),
        ),
        SystemCommandTool(
            "get_disk_usage",
            "Reports disk usage for all mounted filesystems.",
            NoInput,
            lambda _: backend.get_disk_usage(),
        ),
        SystemCommandTool(
            "list_ports",
            "Lists open network ports and connections.",
            NoInput,
            lambda _: backend.list_ports(),
        ),
    ]
