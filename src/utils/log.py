"""
Shared rich console and logging setup.

Progress output goes through ``console`` (rich markup). Warnings and errors go
through the standard ``logging`` module, rendered by RichHandler on the same
console and optionally mirrored to a plain-text file in the log directory.
"""

import logging
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from config.settings import LoggingConfig

console = Console()

_LOGGER_NAMES = ("src", "config", "__main__")


def setup_logging(logging_config: Optional[LoggingConfig] = None) -> None:
    """Configure the package loggers from a LoggingConfig."""
    logging_config = logging_config or LoggingConfig()
    level = getattr(logging, logging_config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if logging_config.log_to_console:
        rich_handler = RichHandler(
            console=console,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(level)
        handlers.append(rich_handler)

    if logging_config.log_to_file:
        logging_config.ensure_dirs()
        log_path = (
            logging_config.log_dir
            / f"storefront_{datetime.now().strftime('%Y%m%d')}.log"
        )
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    for name in _LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG if logging_config.log_to_file else level)
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False
