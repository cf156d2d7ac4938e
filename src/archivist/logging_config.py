"""Logging setup for the archivist CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers; the CLI
calls ``setup_logging()`` once at startup to route records to stderr through
rich.

Usage:
    from archivist.logging_config import setup_logging

    setup_logging(verbose=True)
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore")


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Install a RichHandler on the ``archivist`` logger.

    Args:
        verbose: DEBUG level when True, otherwise WARNING.
        console: Console to log to; defaults to a new stderr console.
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logger = logging.getLogger("archivist")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
