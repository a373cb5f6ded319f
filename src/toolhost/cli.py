"""toolhost CLI entrypoint."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from toolhost import __version__


@click.group()
@click.version_option(version=__version__, prog_name="toolhost")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (defaults to $TOOLHOST_CONFIG).",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """toolhost — local tool server and client."""
    from toolhost.cli_commands._output import print_error
    from toolhost.config import load_config
    from toolhost.errors import ConfigError
    from toolhost.utils.log import configure_logging

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print_error("Configuration error", exc)
        sys.exit(1)

    if log_level:
        config.log_level = log_level
    configure_logging(config.log_level)
    ctx.obj = config


# Register subcommands
from toolhost.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
