"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from toolhost.errors import ToolCallError
from toolhost.lockfile import LockRecord  # noqa: TC001
from toolhost.protocol.models import ToolDescriptor  # noqa: TC001

console = Console()
err_console = Console(stderr=True)


def print_status(record: LockRecord | None) -> None:
    """Print the one-line server status."""
    if record is None:
        console.print("Server is STOPPED.", highlight=False)
    else:
        console.print(
            f"Server is RUNNING on port {record.port} (PID: {record.pid}).", highlight=False
        )


def print_tools_table(tools: list[ToolDescriptor]) -> None:
    """Pretty-print tool descriptors as a table."""
    table = Table(title="Available Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Arguments")

    for tool in tools:
        properties = tool.input_schema.get("properties", {})
        required = set(tool.input_schema.get("required", []))
        args = ", ".join(
            f"{name}{'' if name in required else '?'}: {spec.get('type', 'any')}"
            for name, spec in properties.items()
        )
        table.add_row(escape(tool.name), escape(_truncate(tool.description)), escape(args or "-"))

    console.print(table)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_error(label: str, detail: object) -> None:
    """Print a diagnostic line to stderr."""
    err_console.print(f"[red]{escape(label)}:[/red] {escape(str(detail))}", soft_wrap=True)


def print_call_error(exc: ToolCallError) -> None:
    """Print a server-reported error verbatim (code, message, data)."""
    print_error(f"Tool error {exc.code}", exc.message)
    if exc.data is not None:
        err_console.print_json(json.dumps(exc.data, default=str))


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
