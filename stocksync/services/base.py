"""Base service class with shared connection and infrastructure patterns."""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Callable, TypeVar

from stocksync.infrastructure.db import ensure_schema, get_connection
from stocksync.infrastructure.observability import get_logger

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]
T = TypeVar("T")


class BaseService:
    """Base class for service layer implementations.

    Services receive a connection factory so tests can point them at a
    temporary database, and every unit of work runs against a schema that
    :func:`ensure_schema` has brought up to date.
    """

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory
        self._logger = get_logger(self.__class__.__module__)

    @classmethod
    def sqlite_factory(cls, db_path: str) -> ConnectionFactory:
        """Return a connection factory for a SQLite database path."""

        def connection_factory() -> AbstractContextManager[sqlite3.Connection]:
            return get_connection(db_path)

        return connection_factory

    def _with_connection(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Execute a function within a database connection context."""
        with self._connection_factory() as conn:
            ensure_schema(conn)
            return fn(conn)
