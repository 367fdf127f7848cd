"""
Logging setup using Rich.

Changes:
  - Rich console handler; Playwright and asyncio chatter quieted.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with Rich.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    # stderr keeps stdout free for tool transports
    console = Console(stderr=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=True,
                show_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=False,
            )
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
