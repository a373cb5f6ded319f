"""Input and output records for the system command tools."""

from __future__ import annotations

from pydantic import BaseModel, Field


class KillProcessInput(BaseModel):
    """Arguments of ``kill_process``."""

    pid: int = Field(..., gt=0, description="Process id to kill.")


class NoInput(BaseModel):
    """Arguments of tools that take none."""


class ProcessInfo(BaseModel):
    pid: int
    name: str
    cpu_usage: float = 0.0
    memory_usage_kb: int = 0
    virtual_memory_usage_kb: int = 0
    status: str = ""
    parent_pid: int | None = None


class ListProcessesOutput(BaseModel):
    processes: list[ProcessInfo] = Field(default_factory=list)


class MemoryUsageOutput(BaseModel):
    total_memory_kb: int
    used_memory_kb: int
    free_memory_kb: int
    available_memory_kb: int
    swap_total_kb: int
    swap_used_kb: int


class DiskUsageInfo(BaseModel):
    name: str
    total_space_gb: int
    available_space_gb: int
    file_system: str
    mount_point: str


class DiskUsageOutput(BaseModel):
    disks: list[DiskUsageInfo] = Field(default_factory=list)


class PortConnection(BaseModel):
    protocol: str
    local_address: str
    local_port: int
    remote_address: str = ""
    remote_port: int = 0
    status: str = ""
    pid: int | None = None
    process_name: str | None = None


class ListPortsOutput(BaseModel):
    connections: list[PortConnection] = Field(default_factory=list)
