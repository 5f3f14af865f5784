"""Logging setup for the CLI and the API server."""

import logging
import sys

from doctranslate.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """Configure the ``doctranslate`` logger hierarchy.

    Idempotent: a second call only changes the level.

    Args:
        level: Level name or number. Defaults to DOCTRANSLATE_LOG_LEVEL.

    Returns:
        The package root logger
    """
    root = logging.getLogger("doctranslate")
    resolved = level if level is not None else LOG_LEVEL
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root.addHandler(handler)

    root.setLevel(resolved)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package hierarchy."""
    if name == "doctranslate" or name.startswith("doctranslate."):
        return logging.getLogger(name)
    return logging.getLogger(f"doctranslate.{name}")
