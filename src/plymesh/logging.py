"""Logging for the plymesh package.

Modules log through ``logging.getLogger(__name__)``, so every message
comes from a child of the package logger exported here.
"""

import logging
from typing import Optional, Union

logger: logging.Logger = logging.getLogger("plymesh")

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO, format_string: Optional[str] = None
) -> None:
    """Send log records to stderr and set the plymesh level.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``.
        format_string: Custom format string for log messages.
                      If None, uses DEFAULT_FORMAT.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.setLevel(level)
