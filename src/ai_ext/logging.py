"""
Logging for ai-ext.

Every module logs through a child of the ``ai_ext`` logger. Output goes to
stderr: during ``ai-ext serve`` stdout carries the MCP stdio transport.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

ROOT_LOGGER_NAME = "ai_ext"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_root_logger = logging.getLogger(ROOT_LOGGER_NAME)


def setup_logging(
    level: str | int = "WARNING",
    stream: TextIO | None = None,
    format: str = DEFAULT_FORMAT,
) -> None:
    """
    Attach a single stream handler to the ``ai_ext`` logger.

    Calling it again replaces the previous handler, so the CLI can switch
    to DEBUG with ``-v``.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...) or number
        stream: Output stream (defaults to stderr)
        format: Log record format
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(format))

    _root_logger.handlers.clear()
    _root_logger.addHandler(handler)
    _root_logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("targets.claude")`` -> the ``ai_ext.targets.claude`` logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
