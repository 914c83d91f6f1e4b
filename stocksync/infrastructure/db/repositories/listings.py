"""Repository for synchronized vehicle listings.

Listings are matched by their natural key (the remote stock number) with
the VIN as a secondary match. Every write commits immediately so progress
made by one batch survives if a later batch of the same run fails.
"""

# flake8: noqa: E501

from __future__ import annotations

import json
from typing import Iterable

from stocksync.domain.models import (UNKNOWN_NATURAL_KEY, ListingAttributes,
                                     LocalListing)

from ..connection import iso_utcnow
from .base import BaseRepository


class ListingRepository(BaseRepository):
    """Content repository over the ``listings`` table."""

    def find_by_natural_key(self, key: str, vin: str | None = None) -> int | None:
        """Return the id of the listing matching ``key`` or, failing that, ``vin``.

        The literal ``"unknown"`` key never matches anything.
        """
        if not key or key == UNKNOWN_NATURAL_KEY:
            return None
        listing_id = self._fetch_scalar(
            "SELECT id FROM listings WHERE stock_number = ? ORDER BY id LIMIT 1",
            (key,),
        )
        if listing_id is None and vin:
            listing_id = self._fetch_scalar(
                "SELECT id FROM listings WHERE vin_number = ? AND stock_number <> ? ORDER BY id LIMIT 1",
                (vin, UNKNOWN_NATURAL_KEY),
            )
        return int(listing_id) if listing_id is not None else None

    def get(self, listing_id: int) -> LocalListing | None:
        row = self._fetch_one_as_dict("SELECT * FROM listings WHERE id = ?", (listing_id,))
        if not row:
            return None
        return LocalListing.from_row(row)

    def get_content_hash(self, listing_id: int) -> str | None:
        return self._fetch_scalar(
            "SELECT content_hash FROM listings WHERE id = ?", (listing_id,)
        )

    def create(self, attrs: ListingAttributes, content_hash: str | None = None) -> int:
        columns = attrs.to_columns()
        columns["attributes_json"] = attrs.to_json()
        columns["content_hash"] = content_hash
        columns["gallery_media_ids"] = "[]"
        now = iso_utcnow()
        columns["created_at"] = now
        columns["updated_at"] = now
        names = list(columns)
        placeholders = ", ".join("?" for _ in names)
        listing_id = self._execute_insert(
            f"INSERT INTO listings ({', '.join(names)}) VALUES ({placeholders})",
            tuple(columns[name] for name in names),
        )
        self.conn.commit()
        return listing_id

    def update(
        self, listing_id: int, attrs: ListingAttributes, content_hash: str | None = None
    ) -> None:
        columns = attrs.to_columns()
        columns["attributes_json"] = attrs.to_json()
        columns["content_hash"] = content_hash
        columns["updated_at"] = iso_utcnow()
        assignments = ", ".join(f"{name} = ?" for name in columns)
        self._execute(
            f"UPDATE listings SET {assignments} WHERE id = ?",
            tuple(columns.values()) + (listing_id,),
        )
        self.conn.commit()

    def delete(self, listing_id: int) -> bool:
        cur = self._execute("DELETE FROM listings WHERE id = ?", (listing_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def list_ids(self, stock_number: str | None = None) -> list[int]:
        """Return listing ids, optionally filtered to one stock number."""
        if stock_number is not None:
            rows = self._execute(
                "SELECT id FROM listings WHERE stock_number = ? ORDER BY id",
                (stock_number,),
            ).fetchall()
        else:
            rows = self._execute("SELECT id FROM listings ORDER BY id").fetchall()
        return [int(row[0]) for row in rows]

    def count(self) -> int:
        return int(self._fetch_scalar("SELECT COUNT(*) FROM listings") or 0)

    # ------------------------------------------------------------------
    # Media associations
    # ------------------------------------------------------------------

    def get_primary_media(self, listing_id: int) -> int | None:
        value = self._fetch_scalar(
            "SELECT primary_media_id FROM listings WHERE id = ?", (listing_id,)
        )
        return int(value) if value is not None else None

    def get_gallery(self, listing_id: int) -> list[int]:
        raw = self._fetch_scalar(
            "SELECT gallery_media_ids FROM listings WHERE id = ?", (listing_id,)
        )
        if not raw:
            return []
        try:
            return [int(v) for v in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValueError):
            return []

    def attach_media(self, listing_id: int, asset_id: int, is_primary: bool = False) -> None:
        """Add ``asset_id`` to the gallery and optionally make it the primary asset."""
        gallery = self.get_gallery(listing_id)
        if asset_id not in gallery:
            gallery.append(asset_id)
        if is_primary:
            self._execute(
                "UPDATE listings SET gallery_media_ids = ?, primary_media_id = ? WHERE id = ?",
                (json.dumps(gallery), asset_id, listing_id),
            )
        else:
            self._execute(
                "UPDATE listings SET gallery_media_ids = ? WHERE id = ?",
                (json.dumps(gallery), listing_id),
            )
        self.conn.commit()

    def set_gallery(self, listing_id: int, asset_ids: Iterable[int]) -> None:
        ordered: list[int] = []
        for asset_id in asset_ids:
            if asset_id not in ordered:
                ordered.append(asset_id)
        self._execute(
            "UPDATE listings SET gallery_media_ids = ? WHERE id = ?",
            (json.dumps(ordered), listing_id),
        )
        self.conn.commit()

    def clear_primary(self, listing_id: int) -> None:
        self._execute(
            "UPDATE listings SET primary_media_id = NULL WHERE id = ?", (listing_id,)
        )
        self.conn.commit()
