"""Logging setup shared by the CLI, the API and the scheduler.

Everything stocksync logs goes through loggers under the ``stocksync``
namespace. Fields bound with :func:`log_context` (target id, trigger,
listing id) are appended to every line written while the block is active,
so one run's output can be grepped out of a busy log::

    2024-05-03 09:15:42 INFO    stocksync.services.sync.engine: Starting manual sync [target_id=10012495 trigger=manual]

Audit entries that could not be stored are written to
``stocksync.sync.fallback`` (see :func:`get_fallback_logger`).
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Any, Iterator

APP_LOGGER_NAME = "stocksync"
FALLBACK_LOGGER_NAME = "stocksync.sync.fallback"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose INFO output drowns out sync progress.
NOISY_LOGGERS = ("requests", "urllib3", "httpx", "httpcore", "asyncio", "uvicorn.access")

_fields: ContextVar[dict[str, Any]] = ContextVar("stocksync_log_fields", default={})
_handler: logging.Handler | None = None


class ContextualFormatter(logging.Formatter):
    """Appends the active :func:`log_context` fields as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _fields.get()
        if not fields:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{line} [{rendered}]"


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every log line written inside the block.

    Nested blocks add to the outer fields; leaving a block restores them.
    """
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield
    finally:
        _fields.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_fields.get())


def _install_handler(stream: IO[str] | None) -> logging.Handler:
    global _handler
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if _handler is not None:
        app_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(ContextualFormatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
    app_logger.addHandler(_handler)
    return _handler


def configure_logging(
    level: int | str = logging.INFO,
    third_party_level: int | str = logging.WARNING,
    stream: IO[str] | None = None,
) -> None:
    """Route stocksync logs to ``stream`` (stderr by default).

    ``level`` applies to the ``stocksync`` loggers and ``third_party_level``
    to the HTTP and server libraries in :data:`NOISY_LOGGERS`. Calling it
    again replaces the handler instead of stacking a second one.
    """
    _install_handler(stream)
    logging.getLogger(APP_LOGGER_NAME).setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``.

    Before :func:`configure_logging` runs, stocksync loggers still print at
    INFO to stderr unless the host application already configured logging.
    """
    logger = logging.getLogger(name)
    if _handler is None and not logging.getLogger().handlers:
        _install_handler(None)
        logging.getLogger(APP_LOGGER_NAME).setLevel(logging.INFO)
    return logger


def get_fallback_logger() -> logging.Logger:
    return get_logger(FALLBACK_LOGGER_NAME)


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **fields: Any,
) -> None:
    """Log ``exc`` with its traceback, binding ``fields`` for that one line."""
    with log_context(**fields):
        logger.exception("%s: %s", message, exc)
