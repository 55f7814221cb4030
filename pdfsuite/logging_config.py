"""Logging configuration utilities."""

import logging
import sys
from typing import Optional


def configure_logging(level: str = "INFO") -> None:
    """Configure root logger with a concise, pipe-separated format."""

    root_logger = logging.getLogger()
    if root_logger.handlers:
        # The GUI or a test runner may already have installed handlers; only adjust levels.
        for handler in root_logger.handlers:
            handler.setLevel(level)
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module logger."""

    return logging.getLogger(name if name else __name__)


__all__ = ["configure_logging", "get_logger"]
