"""``toolhost list`` and ``toolhost call`` — talk to the running server."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING, Any

import click

from toolhost.cli_commands._output import print_call_error, print_error, print_json, print_tools_table
from toolhost.client import ToolClient
from toolhost.errors import ConnectionError, ProtocolError, ServerNotRunningError, ToolCallError
from toolhost.lockfile import LockFileManager

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from toolhost.config import ServiceConfig
    from toolhost.protocol.models import ToolDescriptor


@click.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print raw tool descriptors as JSON.")
@click.pass_obj
def list_tools(config: ServiceConfig, as_json: bool) -> None:
    """List the tools the running server exposes."""

    async def _list(client: ToolClient) -> list[ToolDescriptor]:
        return await client.list_tools()

    tools = _run_client(config, _list)
    if as_json:
        print_json([tool.to_wire() for tool in tools])
    else:
        print_tools_table(tools)


@click.command()
@click.argument("tool")
@click.argument("args", nargs=-1)
@click.pass_obj
def call(config: ServiceConfig, tool: str, args: tuple[str, ...]) -> None:
    """Call TOOL with KEY=VALUE arguments.

    \b
    Examples:
        toolhost call echo_message message=hello
        toolhost call kill_process pid=1234
    """
    arguments = parse_arguments(args)

    async def _call(client: ToolClient) -> dict[str, Any]:
        return await client.call_tool(tool, arguments)

    print_json(_run_client(config, _call))


def parse_arguments(args: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Parse ``key=value`` pairs; values stay strings for the server to coerce."""
    arguments: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep or not key:
            msg = f"expected KEY=VALUE, got {arg!r}"
            raise click.BadParameter(msg, param_hint="ARGS")
        arguments[key] = value
    return arguments


def _run_client(config: ServiceConfig, action: Callable[[ToolClient], Awaitable[Any]]) -> Any:
    """Discover the server, run *action* inside a session, map errors to exit codes."""

    async def _session() -> Any:
        client = ToolClient.discover(LockFileManager(config.lock_file), host=config.host)
        async with client:
            return await action(client)

    try:
        return asyncio.run(_session())
    except ToolCallError as exc:
        print_call_error(exc)
    except ServerNotRunningError as exc:
        print_error("Server is not running", exc)
    except ConnectionError as exc:
        print_error("Cannot reach server", exc)
    except ProtocolError as exc:
        print_error("Server misbehaving", exc)
    sys.exit(1)
