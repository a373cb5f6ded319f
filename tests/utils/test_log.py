"""Tests for rich logging setup."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
from rich.logging import RichHandler

from toolhost.utils.log import configure_logging


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    logger = logging.getLogger("toolhost")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestConfigureLogging:
    def test_installs_rich_handler(self) -> None:
        configure_logging("DEBUG")
        logger = logging.getLogger("toolhost")
        assert logger.level == logging.DEBUG
        assert [type(h) for h in logger.handlers] == [RichHandler]
        assert not logger.propagate

    def test_reconfigure_replaces_handler(self) -> None:
        configure_logging()
        configure_logging("warning")
        logger = logging.getLogger("toolhost")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("chatty")
        assert logging.getLogger("toolhost").level == logging.INFO
