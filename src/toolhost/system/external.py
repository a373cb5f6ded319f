"""ExternalSystemCommand — shells out to platform utilities.

Each operation runs a utility through :class:`CommandRunner`, parses its
stdout, and maps a non-zero exit status to a structured error that keeps
the captured stdout/stderr for diagnosis.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import sys
from collections.abc import Callable
from typing import Any

from toolhost.errors import CommandError
from toolhost.protocol.models import ToolCallResult
from toolhost.system.backend import command_failed, refuse_kill
from toolhost.system.models import (
    DiskUsageInfo,
    DiskUsageOutput,
    KillProcessInput,
    ListPortsOutput,
    ListProcessesOutput,
    MemoryUsageOutput,
    PortConnection,
    ProcessInfo,
)
from toolhost.system.runner import CommandRequest, CommandResult, CommandRunner

logger = logging.getLogger(__name__)

_PS_COLUMNS = "pid=,ppid=,pcpu=,rss=,vsz=,stat=,comm="
_SS_USERS = re.compile(r'\("(?P<name>[^"]*)",pid=(?P<pid>\d+)')


class ExternalSystemCommand:
    """Satisfies :class:`~toolhost.system.backend.SystemCommand` via subprocesses."""

    def __init__(self, runner: CommandRunner | None = None, *, platform: str | None = None) -> None:
        self._runner = runner or CommandRunner()
        self._platform = platform or sys.platform

    @property
    def is_windows(self) -> bool:
        return self._platform.startswith("win")

    async def kill_process(self, input: KillProcessInput) -> ToolCallResult:
        refused = refuse_kill(input.pid)
        if refused is not None:
            return refused
        pid = str(input.pid)
        if self.is_windows:
            command = ["taskkill", "/PID", pid, "/F"]
        elif self._platform.startswith(("linux", "darwin")) or "bsd" in self._platform:
            command = ["kill", "-9", pid]
        else:
            return self._unsupported("kill_process")

        return await self._invoke(
            f"kill process {pid}",
            command,
            lambda _: {"message": f"Process {pid} killed successfully."},
        )

    async def list_processes(self) -> ToolCallResult:
        if self.is_windows:
            return await self._invoke(
                "list processes", ["tasklist", "/FO", "CSV", "/NH"], parse_tasklist_output
            )
        return await self._invoke("list processes", ["ps", "-eo", _PS_COLUMNS], parse_ps_output)

    async def get_memory_usage(self) -> ToolCallResult:
        if not self._platform.startswith("linux"):
            return self._unsupported("get_memory_usage")
        return await self._invoke("read memory usage", ["free", "-k"], parse_free_output)

    async def get_disk_usage(self) -> ToolCallResult:
        if self.is_windows:
            return self._unsupported("get_disk_usage")
        if self._platform.startswith("linux"):
            return await self._invoke(
                "read disk usage", ["df", "-kPT"], lambda out: parse_df_output(out, typed=True)
            )
        return await self._invoke("read disk usage", ["df", "-kP"], parse_df_output)

    async def list_ports(self) -> ToolCallResult:
        if self.is_windows:
            return await self._invoke("list ports", ["netstat", "-ano"], parse_netstat_output)
        if self._platform.startswith("linux"):
            return await self._invoke("list ports", ["ss", "-tunapH"], parse_ss_output)
        return self._unsupported("list_ports")

    async def _invoke(
        self,
        action: str,
        command: list[str],
        parse: Callable[[str], Any],
    ) -> ToolCallResult:
        try:
            result = await self._runner.execute(CommandRequest(command=command))
        except CommandError as exc:
            return command_failed(f"Failed to execute {command[0]} to {action}: {exc}")

        if not result.ok:
            return self._failed(action, result)

        try:
            value = parse(result.stdout)
        except (ValueError, LookupError) as exc:
            logger.debug("Could not parse %s output", command[0], exc_info=True)
            return command_failed(
                f"Could not parse output of {command[0]}: {exc}",
                stdout=result.stdout,
            )
        return ToolCallResult.success(value)

    @staticmethod
    def _failed(action: str, result: CommandResult) -> ToolCallResult:
        detail = result.stderr.strip() or result.stdout.strip()
        return command_failed(
            f"Failed to {action}: {detail}",
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )

    def _unsupported(self, operation: str) -> ToolCallResult:
        return command_failed(
            f"Unsupported operating system for {operation}: {self._platform}"
        )


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------


def parse_ps_output(stdout: str) -> dict[str, Any]:
    """Parse ``ps -eo pid=,ppid=,pcpu=,rss=,vsz=,stat=,comm=``."""
    processes: list[ProcessInfo] = []
    for line in stdout.splitlines():
        fields = line.split(None, 6)
        if len(fields) < 7:
            continue
        pid, ppid, pcpu, rss, vsz, stat, comm = fields
        processes.append(
            ProcessInfo(
                pid=int(pid),
                name=comm.strip(),
                cpu_usage=float(pcpu),
                memory_usage_kb=int(rss),
                virtual_memory_usage_kb=int(vsz),
                status=stat,
                parent_pid=int(ppid) or None,
            )
        )
    return ListProcessesOutput(processes=processes).model_dump()


def parse_tasklist_output(stdout: str) -> dict[str, Any]:
    """Parse ``tasklist /FO CSV /NH`` (name, pid, session, session#, mem)."""
    processes: list[ProcessInfo] = []
    for row in csv.reader(io.StringIO(stdout)):
        if len(row) < 5:
            continue
        mem = re.sub(r"[^\d]", "", row[4])
        processes.append(
            ProcessInfo(
                pid=int(row[1]),
                name=row[0],
                memory_usage_kb=int(mem) if mem else 0,
                status=row[2],
            )
        )
    return ListProcessesOutput(processes=processes).model_dump()


def parse_free_output(stdout: str) -> dict[str, Any]:
    """Parse ``free -k``."""
    rows: dict[str, list[int]] = {}
    for line in stdout.splitlines():
        label, _, rest = line.partition(":")
        if rest:
            rows[label.strip().lower()] = [int(v) for v in rest.split()]

    mem = rows["mem"]
    swap = rows.get("swap", [0, 0, 0])
    available = mem[5] if len(mem) > 5 else mem[2]
    return MemoryUsageOutput(
        total_memory_kb=mem[0],
        used_memory_kb=mem[1],
        free_memory_kb=mem[2],
        available_memory_kb=available,
        swap_total_kb=swap[0],
        swap_used_kb=swap[1],
    ).model_dump()


def parse_df_output(stdout: str, *, typed: bool = False) -> dict[str, Any]:
    """Parse POSIX ``df -kP`` (or ``df -kPT`` when *typed*)."""
    disks: list[DiskUsageInfo] = []
    width = 7 if typed else 6
    for line in stdout.splitlines()[1:]:
        fields = line.split(None, width - 1)
        if len(fields) < width:
            continue
        if typed:
            name, fstype, blocks, _used, avail, _cap, mount = fields
        else:
            name, blocks, _used, avail, _cap, mount = fields
            fstype = ""
        disks.append(
            DiskUsageInfo(
                name=name,
                total_space_gb=int(blocks) // (1024 * 1024),
                available_space_gb=int(avail) // (1024 * 1024),
                file_system=fstype,
                mount_point=mount,
            )
        )
    return DiskUsageOutput(disks=disks).model_dump()


def parse_ss_output(stdout: str) -> dict[str, Any]:
    """Parse ``ss -tunapH`` (netid, state, recv-q, send-q, local, peer, process)."""
    connections: list[PortConnection] = []
    for line in stdout.splitlines():
        fields = line.split(None, 6)
        if len(fields) < 6:
            continue
        netid, state, _recv, _send, local, peer = fields[:6]
        local_addr, local_port = split_host_port(local)
        remote_addr, remote_port = split_host_port(peer)
        pid: int | None = None
        name: str | None = None
        if len(fields) == 7:
            match = _SS_USERS.search(fields[6])
            if match:
                pid = int(match.group("pid"))
                name = match.group("name")
        connections.append(
            PortConnection(
                protocol=netid,
                local_address=local_addr,
                local_port=local_port,
                remote_address=remote_addr,
                remote_port=remote_port,
                status=state,
                pid=pid,
                process_name=name,
            )
        )
    return ListPortsOutput(connections=connections).model_dump()


def parse_netstat_output(stdout: str) -> dict[str, Any]:
    """Parse Windows ``netstat -ano``."""
    connections: list[PortConnection] = []
    for line in stdout.splitlines():
        fields = line.split()
        if not fields or fields[0].upper() not in ("TCP", "UDP"):
            continue
        proto = fields[0].lower()
        if proto == "tcp" and len(fields) >= 5:
            local, foreign, state, pid = fields[1], fields[2], fields[3], fields[4]
        elif proto == "udp" and len(fields) >= 4:
            local, foreign, state, pid = fields[1], fields[2], "", fields[3]
        else:
            continue
        local_addr, local_port = split_host_port(local)
        remote_addr, remote_port = split_host_port(foreign)
        connections.append(
            PortConnection(
                protocol=proto,
                local_address=local_addr,
                local_port=local_port,
                remote_address=remote_addr,
                remote_port=remote_port,
                status=state,
                pid=int(pid),
            )
        )
    return ListPortsOutput(connections=connections).model_dump()


def split_host_port(address: str) -> tuple[str, int]:
    """Split ``host:port`` (IPv6 in brackets, ``*`` for wildcards)."""
    host, _, port = address.rpartition(":")
    host = host.strip("[]").split("%", 1)[0]
    return host, int(port) if port.isdigit() else 0
