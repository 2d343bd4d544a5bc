"""Logging setup for medialend.

Modules log through ``logging.getLogger(__name__)``; the CLI installs a
Rich handler once at startup.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"


def configure_logging(level: str = "WARNING", console: Optional[Console] = None) -> None:
    """Route the ``medialend`` logger tree to a Rich console handler."""
    logger = logging.getLogger("medialend")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Replace handlers installed by a previous call
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        show_time=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
