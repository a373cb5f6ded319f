"""Shared fixtures: an isolated lock file, a fake backend, and a live server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from toolhost.lockfile import LockFileManager
from toolhost.protocol.models import ToolCallResult
from toolhost.server import ToolServer
from toolhost.system.backend import command_failed
from toolhost.system.models import KillProcessInput
from toolhost.tools.router import ToolRouter, build_default_router


class FakeSystemCommand:
    """In-memory backend: pid 4242 exists, everything else is missing."""

    LIVE_PID = 4242

    def __init__(self) -> None:
        self.killed: list[int] = []

    async def kill_process(self, input: KillProcessInput) -> ToolCallResult:
        if input.pid != self.LIVE_PID:
            return command_failed(f"Failed to kill process {input.pid}: no such process")
        self.killed.append(input.pid)
        return ToolCallResult.success({"message": f"Process {input.pid} killed successfully."})

    async def list_processes(self) -> ToolCallResult:
        return ToolCallResult.success(
            {"processes": [{"pid": self.LIVE_PID, "name": "fake", "cpu_usage": 0.0}]}
        )

    async def get_memory_usage(self) -> ToolCallResult:
        return ToolCallResult.success({"total_memory_kb": 1024, "used_memory_kb": 512})

    async def get_disk_usage(self) -> ToolCallResult:
        return ToolCallResult.success({"disks": []})

    async def list_ports(self) -> ToolCallResult:
        return ToolCallResult.success({"connections": []})


DEAD_PID = 999_999


@pytest.fixture
def dead_pid() -> Iterator[int]:
    """Make psutil report DEAD_PID as gone and every other pid as alive."""
    with patch("toolhost.lockfile.psutil.pid_exists", side_effect=lambda pid: pid != DEAD_PID):
        yield DEAD_PID


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / "toolhost.lock"


@pytest.fixture
def lock(lock_path: Path) -> LockFileManager:
    return LockFileManager(lock_path)


@pytest.fixture
def fake_backend() -> FakeSystemCommand:
    return FakeSystemCommand()


@pytest.fixture
def router(fake_backend: FakeSystemCommand) -> ToolRouter:
    return build_default_router(fake_backend)


@pytest.fixture
async def server(router: ToolRouter, lock: LockFileManager) -> AsyncIterator[ToolServer]:
    """A started server on an ephemeral port, closed after the test."""
    srv = ToolServer(router, lock)
    await srv.start()
    try:
        yield srv
    finally:
        await srv.close()
