from __future__ import annotations

from ..connection import iso_utcnow
from .base import BaseRepository


class SyncStateRepository(BaseRepository):
    """Key-value store over the ``sync_state`` table."""

    def get(self, key: str) -> str | None:
        return self._fetch_scalar("SELECT value FROM sync_state WHERE key = ?", (key,))

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self.delete(key)
            return
        self._execute(
            "INSERT INTO sync_state (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at",
            (key, value, iso_utcnow()),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        self._execute("DELETE FROM sync_state WHERE key = ?", (key,))
        self.conn.commit()
