"""Audit trail of sync runs."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Protocol

from stocksync.domain.models import SyncLogEntry
from stocksync.infrastructure.observability.logging import (get_fallback_logger,
                                                            get_logger)

from .errors import LoggingFailure

logger = get_logger(__name__)
fallback_logger = get_fallback_logger()


class LogStore(Protocol):
    def append(self, entry: SyncLogEntry) -> int: ...

    def query(
        self, filters: dict[str, Any] | None = None, page: int = 1, per_page: int = 20
    ) -> list[SyncLogEntry]: ...

    def count(self, filters: dict[str, Any] | None = None) -> int: ...


class RunLogger:
    """Appends :class:`SyncLogEntry` rows and never lets a failed write escape.

    When the store is unavailable the entry is written to the
    ``stocksync.sync.fallback`` logger instead, so the audit record survives
    in the process logs.
    """

    def __init__(self, store: LogStore) -> None:
        self.store = store

    def log(self, entry: SyncLogEntry) -> int | None:
        try:
            log_id = self.store.append(entry)
        except Exception as exc:
            failure = LoggingFailure(f"Failed to write sync log entry: {exc}")
            fallback_logger.error(
                "%s; entry=%s", failure, json.dumps(asdict(entry), default=str)
            )
            return None
        logger.info(
            "Recorded sync log %s (status=%s, created=%s, updated=%s, deleted=%s, skipped=%s)",
            log_id,
            entry.status,
            entry.created_count,
            entry.updated_count,
            entry.deleted_count,
            entry.skipped_count,
        )
        return log_id

    def query(
        self, filters: dict[str, Any] | None = None, page: int = 1, per_page: int = 20
    ) -> list[SyncLogEntry]:
        return self.store.query(filters, page=page, per_page=per_page)

    def count(self, filters: dict[str, Any] | None = None) -> int:
        return self.store.count(filters)
