"""
Logging utilities for the FastAPI application and command-line tools.

Provides a consistent logging format and configuration.
"""

import logging
import sys
from typing import Optional, TextIO

# Loggers that emit a line per statement at INFO.
_NOISY_LOGGERS = ("snowflake.connector", "botocore", "urllib3")


def configure_logging(level: str = "INFO", *, stream: Optional[TextIO] = None) -> None:
    """Configure root logging with a sensible default format.

    Command-line tools pass ``sys.stderr`` so their stdout stays clean for
    the text they print.
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=stream or sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
