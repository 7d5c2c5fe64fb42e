"""Logging for the ``price_archive`` package.

Library modules only call :func:`get_logger`; they never attach handlers.
Entry points (the CLI commands, including ``serve``) call
:func:`configure_logging` once at startup. Calling it again replaces the
handler it installed earlier rather than stacking a second one.

The level comes from the ``level`` argument, else ``PRICE_ARCHIVE_LOG_LEVEL``,
else ``INFO``. Unknown level names raise ``ValueError``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "price_archive"
_LEVEL_ENV = "PRICE_ARCHIVE_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
# Marks the handler installed by configure_logging.
_HANDLER_ATTR = "_price_archive_handler"


def resolve_level(level: int | str | None = None) -> int:
    """Return the numeric level for ``level`` or, when absent, the env var."""

    source = "log level"
    if level is None:
        raw = os.getenv(_LEVEL_ENV, "").strip()
        if not raw:
            return logging.INFO
        level, source = raw, _LEVEL_ENV
    if isinstance(level, int):
        return level

    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"{source} must be a logging level name, got {level!r}")
    return numeric


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach one stream handler to the package logger and set its level."""

    resolved = resolve_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler) or getattr(h, _HANDLER_ATTR, False):
            logger.removeHandler(h)
    handler = logging.StreamHandler(stream or sys.stderr)
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    handler.setLevel(resolved)

    logger.setLevel(resolved)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until :func:`configure_logging` runs."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
