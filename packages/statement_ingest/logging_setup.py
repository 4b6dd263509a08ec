"""Logging for ``statement_ingest``.

Every module logs through ``get_logger("statement_ingest.<module>")`` and
never attaches handlers itself; until an entrypoint calls
``configure_logging`` the package logger only carries a ``NullHandler``.

Environment
-----------
``STATEMENT_INGEST_LOG_LEVEL``
    Level used when ``configure_logging`` gets no explicit level
    (name such as ``debug`` or a number). Defaults to ``INFO``.
``STATEMENT_INGEST_LOG_SQL``
    When truthy, SQLAlchemy's engine logger (statements, savepoints and the
    confirm compare-and-swap) is routed to the same handler.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

LOGGER_NAME = "statement_ingest"
LEVEL_ENV = "STATEMENT_INGEST_LOG_LEVEL"
SQL_ENV = "STATEMENT_INGEST_LOG_SQL"

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_SQL_LOGGER_NAME = "sqlalchemy.engine"
_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV)
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelNamesMapping().get(name)
        if numeric is not None:
            return numeric
    return logging.INFO


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(
    level: int | str | None = None,
    *,
    sql: bool | None = None,
    stream: IO[str] = sys.stderr,
) -> logging.Handler:
    """Attach one stderr handler to the package logger and return it.

    Repeated calls reuse the first handler and only adjust the level, so
    the CLI callback and a host application can both call this safely.
    ``sql=None`` defers to ``STATEMENT_INGEST_LOG_SQL``.
    """

    global _handler
    resolved = _parse_level(level)
    pkg_logger = logging.getLogger(LOGGER_NAME)

    if _handler is None:
        for existing in list(pkg_logger.handlers):
            if isinstance(existing, logging.NullHandler):
                pkg_logger.removeHandler(existing)
        _handler = logging.StreamHandler(stream)
        _handler.setFormatter(logging.Formatter(_FORMAT))
        pkg_logger.addHandler(_handler)
        pkg_logger.propagate = False

    _handler.setLevel(resolved)
    pkg_logger.setLevel(resolved)

    if sql if sql is not None else _env_flag(SQL_ENV):
        sql_logger = logging.getLogger(_SQL_LOGGER_NAME)
        if _handler not in sql_logger.handlers:
            sql_logger.addHandler(_handler)
        sql_logger.setLevel(logging.INFO)
    return _handler


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LOGGER_NAME", "configure_logging", "get_logger"]
