"""Shared console, debug flag and log sink for gqlens.

Usage::

    from gqlens.helpers import console as output

    output.init(debug=True)     # once at startup; installs a RichHandler
    output.console.print(...)   # user-facing output
    output.is_debug()           # current debug flag
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()
err_console = Console(stderr=True)

_debug = False
_handler: logging.Handler | None = None

LOGGER_NAME = "gqlens"


def init(debug: bool = False) -> None:
    """Set the debug flag and route ``gqlens.*`` log records to stderr.

    With *debug* the level is DEBUG, otherwise WARNING.  Calling again
    replaces the previously installed handler.
    """
    global _debug, _handler

    _debug = debug
    logger = logging.getLogger(LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = RichHandler(console=err_console, show_path=False, markup=False)
    logger.addHandler(_handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def reset() -> None:
    """Clear the debug flag and remove the handler (for tests)."""
    global _debug, _handler
    if _handler is not None:
        logging.getLogger(LOGGER_NAME).removeHandler(_handler)
    _debug = False
    _handler = None


def is_debug() -> bool:
    return _debug


def truncate(s: str, max_len: int) -> str:
    """Truncate a string to max_len, adding '...' if needed."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."
