"""NativeSystemCommand — in-process introspection through psutil."""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable
from typing import Any

import psutil

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

logger = logging.getLogger(__name__)

_GB = 1024**3


class NativeSystemCommand:
    """Satisfies :class:`~toolhost.system.backend.SystemCommand` with psutil.

    psutil calls block, so each one runs in a worker thread.
    """

    async def kill_process(self, input: KillProcessInput) -> ToolCallResult:
        refused = refuse_kill(input.pid)
        if refused is not None:
            return refused
        return await self._run(f"kill process {input.pid}", self._kill, input.pid)

    async def list_processes(self) -> ToolCallResult:
        return await self._run("list processes", self._processes)

    async def get_memory_usage(self) -> ToolCallResult:
        return await self._run("read memory usage", self._memory)

    async def get_disk_usage(self) -> ToolCallResult:
        return await self._run("read disk usage", self._disks)

    async def list_ports(self) -> ToolCallResult:
        return await self._run("list ports", self._ports)

    @staticmethod
    async def _run(action: str, func: Callable[..., Any], *args: Any) -> ToolCallResult:
        try:
            value = await asyncio.to_thread(func, *args)
        except (psutil.Error, OSError, NotImplementedError) as exc:
            logger.debug("Native backend failed to %s", action, exc_info=True)
            return command_failed(f"Failed to {action}: {exc}")
        return ToolCallResult.success(value)

    @staticmethod
    def _kill(pid: int) -> dict[str, Any]:
        psutil.Process(pid).kill()
        return {"message": f"Process {pid} killed successfully."}

    @staticmethod
    def _processes() -> dict[str, Any]:
        processes: list[ProcessInfo] = []
        attrs = ["pid", "name", "cpu_percent", "memory_info", "status", "ppid"]
        for proc in psutil.process_iter(attrs):
            info = proc.info
            mem = info.get("memory_info")
            processes.append(
                ProcessInfo(
                    pid=info["pid"],
                    name=info.get("name") or "",
                    cpu_usage=info.get("cpu_percent") or 0.0,
                    memory_usage_kb=mem.rss // 1024 if mem else 0,
                    virtual_memory_usage_kb=mem.vms // 1024 if mem else 0,
                    status=info.get("status") or "",
                    parent_pid=info.get("ppid"),
                )
            )
        return ListProcessesOutput(processes=processes).model_dump()

    @staticmethod
    def _memory() -> dict[str, Any]:
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemoryUsageOutput(
            total_memory_kb=vm.total // 1024,
            used_memory_kb=vm.used // 1024,
            free_memory_kb=vm.free // 1024,
            available_memory_kb=vm.available // 1024,
            swap_total_kb=swap.total // 1024,
            swap_used_kb=swap.used // 1024,
        ).model_dump()

    @staticmethod
    def _disks() -> dict[str, Any]:
        disks: list[DiskUsageInfo] = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                continue
            disks.append(
                DiskUsageInfo(
                    name=part.device,
                    total_space_gb=usage.total // _GB,
                    available_space_gb=usage.free // _GB,
                    file_system=part.fstype,
                    mount_point=part.mountpoint,
                )
            )
        return DiskUsageOutput(disks=disks).model_dump()

    @staticmethod
    def _ports() -> dict[str, Any]:
        names: dict[int, str] = {}
        connections: list[PortConnection] = []
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr:
                continue
            if conn.pid is not None and conn.pid not in names:
                try:
                    names[conn.pid] = psutil.Process(conn.pid).name()
                except psutil.Error:
                    names[conn.pid] = ""
            connections.append(
                PortConnection(
                    protocol="tcp" if conn.type == socket.SOCK_STREAM else "udp",
                    local_address=conn.laddr.ip,
                    local_port=conn.laddr.port,
                    remote_address=conn.raddr.ip if conn.raddr else "",
                    remote_port=conn.raddr.port if conn.raddr else 0,
                    status=conn.status if conn.status != psutil.CONN_NONE else "",
                    pid=conn.pid,
                    process_name=names.get(conn.pid) if conn.pid is not None else None,
                )
            )
        return ListPortsOutput(connections=connections).model_dump()
