"""Repository for downloaded media assets, deduplicated by source URL."""

from __future__ import annotations

from dataclasses import dataclass

from ..connection import iso_utcnow
from .base import BaseRepository


@dataclass
class MediaAsset:
    """A locally stored media file."""

    id: int
    source_url: str
    local_path: str
    content_type: str | None
    size_bytes: int | None
    sha256: str | None
    owner_listing_id: int | None
    created_at: str


class MediaRepository(BaseRepository):
    def find_by_source_url(self, source_url: str) -> MediaAsset | None:
        row = self._fetch_one_as_dict(
            "SELECT * FROM media_assets WHERE source_url = ?", (source_url,)
        )
        return MediaAsset(**row) if row else None

    def get(self, asset_id: int) -> MediaAsset | None:
        row = self._fetch_one_as_dict(
            "SELECT * FROM media_assets WHERE id = ?", (asset_id,)
        )
        return MediaAsset(**row) if row else None

    def create(
        self,
        source_url: str,
        local_path: str,
        *,
        content_type: str | None = None,
        size_bytes: int | None = None,
        sha256: str | None = None,
        owner_listing_id: int | None = None,
    ) -> int:
        asset_id = self._execute_insert(
            """
            INSERT INTO media_assets (
                source_url, local_path, content_type, size_bytes, sha256,
                owner_listing_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source_url,
                local_path,
                content_type,
                size_bytes,
                sha256,
                owner_listing_id,
                iso_utcnow(),
            ),
        )
        self.conn.commit()
        return asset_id

    def count(self) -> int:
        return int(self._fetch_scalar("SELECT COUNT(*) FROM media_assets") or 0)
