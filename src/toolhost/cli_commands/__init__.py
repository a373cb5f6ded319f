"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from toolhost.cli_commands.server import serve, start, status, stop
    from toolhost.cli_commands.tools import call, list_tools

    cli.add_command(start)
    cli.add_command(stop)
    cli.add_command(status)
    cli.add_command(serve)
    cli.add_command(list_tools)
    cli.add_command(call)
