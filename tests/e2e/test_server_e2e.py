"""End-to-end tests: real servers, real backends, real CLI processes."""

from __future__ import annotations

import asyncio
import os
import subprocess
import sys
from pathlib import Path

import pytest

from toolhost.client import ToolClient, result_text
from toolhost.errors import ServerAlreadyRunningError, ToolCallError
from toolhost.lockfile import LockFileManager
from toolhost.protocol.models import ErrorCode
from toolhost.server import ToolServer
from toolhost.system.native import NativeSystemCommand
from toolhost.tools.router import build_default_router

MISSING_PID = 2**22 + 12345


class TestSingleton:
    async def test_concurrent_start_has_one_winner(self, lock: LockFileManager) -> None:
        servers = [ToolServer(build_default_router(NativeSystemCommand()), lock) for _ in range(4)]
        outcomes = await asyncio.gather(*(s.start() for s in servers), return_exceptions=True)

        try:
            winners = [o for o in outcomes if not isinstance(o, BaseException)]
            losers = [o for o in outcomes if isinstance(o, ServerAlreadyRunningError)]
            assert len(winners) == 1
            assert len(losers) == len(servers) - 1
            assert lock.read() == winners[0]
            assert all(loser.port == winners[0].port for loser in losers)
        finally:
            for srv in servers:
                await srv.close()

        assert not lock.path.exists()


class TestNativeBackend:
    async def test_kill_missing_pid_then_keep_going(self, lock: LockFileManager) -> None:
        srv = ToolServer(build_default_router(NativeSystemCommand()), lock)
        await srv.start()
        try:
            async with ToolClient(srv.port) as client:
                with pytest.raises(ToolCallError) as excinfo:
                    await client.call_tool("kill_process", {"pid": MISSING_PID})
                assert excinfo.value.code == ErrorCode.SYSTEM_COMMAND_FAILED
                assert str(MISSING_PID) in excinfo.value.data["error"]

                memory = await client.call_tool("get_memory_usage")
                assert memory["structuredContent"]["total_memory_kb"] > 0

                weather = await client.call_tool("get_weather", {"location": "TimeCity"})
                assert result_text(weather).startswith("Weather in TimeCity is sunny, and ")
        finally:
            await srv.close()


def _cli(*args: str, env: dict[str, str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "toolhost.cli", *args],
        capture_output=True,
        text=True,
        env=env,
        timeout=30,
    )


@pytest.mark.skipif(sys.platform == "win32", reason="detached process handling differs")
class TestCliLifecycle:
    def test_start_call_stop(self, tmp_path: Path) -> None:
        env = {**os.environ, "TOOLHOST_LOCK_FILE": str(tmp_path / "toolhost.lock")}
        env.pop("TOOLHOST_CONFIG", None)
        try:
            started = _cli("start", env=env)
            assert started.returncode == 0, started.stderr
            assert "Server is RUNNING on port" in started.stdout

            again = _cli("start", env=env)
            assert again.returncode == 0
            assert again.stdout.strip().splitlines()[-1] == started.stdout.strip().splitlines()[-1]

            called = _cli("call", "echo_message", "message=hello", env=env)
            assert called.returncode == 0, called.stderr
            assert "Echoing: hello" in called.stdout

            listed = _cli("list", "--json", env=env)
            assert listed.returncode == 0, listed.stderr
            assert "kill_process" in listed.stdout
        finally:
            stopped = _cli("stop", env=env)

        assert stopped.returncode == 0, stopped.stderr
        assert "Server stopped." in stopped.stdout
        assert not (tmp_path / "toolhost.lock").exists()

        status = _cli("status", env=env)
        assert "Server is STOPPED." in status.stdout
