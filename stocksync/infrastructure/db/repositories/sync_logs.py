"""Append-only store for sync run audit entries."""

from __future__ import annotations

import json
from typing import Any

from stocksync.domain.models import SyncLogEntry

from .base import BaseRepository

_FILTER_COLUMNS = ("status", "sync_type", "target_id")


def _build_where(filters: dict[str, Any] | None) -> tuple[str, tuple[Any, ...]]:
    clauses: list[str] = []
    params: list[Any] = []
    for column in _FILTER_COLUMNS:
        value = (filters or {}).get(column)
        if value in (None, ""):
            continue
        clauses.append(f"{column} = ?")
        params.append(value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, tuple(params)


class SyncLogRepository(BaseRepository):
    """Log store over ``sync_logs``. Rows are inserted once and never updated."""

    def append(self, entry: SyncLogEntry) -> int:
        log_id = self._execute_insert(
            """
            INSERT INTO sync_logs (
                sync_time, sync_type, target_id, created_count, updated_count,
                deleted_count, skipped_count, status, duration, error_message, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.sync_time,
                entry.sync_type,
                entry.target_id,
                entry.created_count,
                entry.updated_count,
                entry.deleted_count,
                entry.skipped_count,
                entry.status,
                entry.duration,
                entry.error_message,
                json.dumps(entry.details, default=str),
            ),
        )
        self.conn.commit()
        return log_id

    def get(self, log_id: int) -> SyncLogEntry | None:
        row = self._fetch_one_as_dict("SELECT * FROM sync_logs WHERE id = ?", (log_id,))
        return self._row_to_entry(row) if row else None

    def query(
        self, filters: dict[str, Any] | None = None, page: int = 1, per_page: int = 20
    ) -> list[SyncLogEntry]:
        """Return one page of entries, newest first."""
        where, params = _build_where(filters)
        page = max(1, int(page))
        per_page = max(1, int(per_page))
        rows = self._fetch_all_as_dicts(
            f"SELECT * FROM sync_logs {where} ORDER BY sync_time DESC, id DESC LIMIT ? OFFSET ?",
            params + (per_page, (page - 1) * per_page),
        )
        return [self._row_to_entry(row) for row in rows]

    def count(self, filters: dict[str, Any] | None = None) -> int:
        where, params = _build_where(filters)
        return int(self._fetch_scalar(f"SELECT COUNT(*) FROM sync_logs {where}", params) or 0)

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> SyncLogEntry:
        details_raw = row.get("details")
        try:
            details = json.loads(details_raw) if details_raw else {}
        except (json.JSONDecodeError, TypeError):
            details = {"raw": details_raw}
        return SyncLogEntry(
            id=row["id"],
            sync_time=row["sync_time"],
            sync_type=row["sync_type"],
            target_id=row["target_id"],
            created_count=row["created_count"],
            updated_count=row["updated_count"],
            deleted_count=row["deleted_count"],
            skipped_count=row["skipped_count"],
            status=row["status"],
            duration=row["duration"],
            error_message=row.get("error_message"),
            details=details if isinstance(details, dict) else {"raw": details},
        )
