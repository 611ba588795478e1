"""Logging setup: one RichHandler on the package logger."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "optplug"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Route ``optplug.*`` loggers through rich. Safe to call more than once."""
    root = logging.getLogger(LOGGER_NAME)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
    )
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return root
