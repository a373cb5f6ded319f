"""System command backends — process, memory, disk, and port introspection."""

from toolhost.system.backend import SystemCommand, command_failed, create_system_command
from toolhost.system.external import ExternalSystemCommand
from toolhost.system.models import KillProcessInput, NoInput
from toolhost.system.native import NativeSystemCommand
from toolhost.system.runner import CommandRequest, CommandResult, CommandRunner

__all__ = [
    "CommandRequest",
    "CommandResult",
    "CommandRunner",
    "ExternalSystemCommand",
    "KillProcessInput",
    "NativeSystemCommand",
    "NoInput",
    "SystemCommand",
    "command_failed",
    "create_system_command",
]
