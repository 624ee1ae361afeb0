"""Logging for the ``ledger_engine`` package.

The host decides where records go: ``configure_logging(level)`` is called once
by an entrypoint (the CLI passes ``LedgerConfig.log_level``) and attaches a
single stderr handler to the ``"ledger_engine"`` logger. Library modules only
call ``get_logger(__name__)``; until something is configured the package
logger carries a ``NullHandler`` and stays silent.

Records carry the thread name because the insights runner computes reports on
worker threads.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_engine"
_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"
_CONFIGURED = False


def resolve_level(level: int | str) -> int:
    """Return the numeric level for ``level`` (``"debug"``, ``"20"``, ``10``).

    Raises ``ValueError`` for names the ``logging`` module does not define.
    """

    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"unknown log level: {level!r}")
    return numeric


def configure_logging(level: int | str = logging.INFO, *, stream: IO[str] | None = None) -> None:
    """Attach the package handler once; later calls only validate ``level``."""

    global _CONFIGURED
    resolved = resolve_level(level)
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Records stop at the package logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a ``ledger_engine`` module, silent until configured."""

    if name != _PKG_LOGGER_NAME and not name.startswith(_PKG_LOGGER_NAME + "."):
        name = f"{_PKG_LOGGER_NAME}.{name}"
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
