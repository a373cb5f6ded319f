"""Logging setup for the CLI and the background server."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", *, rich_tracebacks: bool = True) -> None:
    """Route ``toolhost`` log records to stderr through rich.

    Calling it again replaces the previously installed handler.
    """
    root = logging.getLogger("toolhost")
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=rich_tracebacks,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
