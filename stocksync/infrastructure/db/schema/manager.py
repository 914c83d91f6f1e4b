from __future__ import annotations

from .migrations import SchemaMigrator
from .tables import (
    SCHEMA_LISTINGS_SQL,
    SCHEMA_MEDIA_ASSETS_SQL,
    SCHEMA_SYNC_LOGS_SQL,
    SCHEMA_SYNC_STATE_SQL,
)


def ensure_schema(conn) -> None:
    """Create every table the sync store needs and record the schema version."""

    migrator = SchemaMigrator(conn)
    migrator.ensure_table()
    conn.executescript(SCHEMA_LISTINGS_SQL)
    conn.executescript(SCHEMA_MEDIA_ASSETS_SQL)
    conn.executescript(SCHEMA_SYNC_STATE_SQL)
    conn.executescript(SCHEMA_SYNC_LOGS_SQL)
    _ensure_listing_columns(conn, migrator)
    migrator.ensure_current_version()
    conn.commit()


def _ensure_listing_columns(conn, migrator: SchemaMigrator) -> None:
    """Add columns introduced after the first schema to older databases."""

    existing = {row[1] for row in conn.execute("PRAGMA table_info(listings)").fetchall()}
    to_add = {
        "content_hash": "TEXT",
        "gallery_media_ids": "TEXT",
        "lifecycle_state": "TEXT",
    }
    added_cols: list[str] = []
    for col, col_type in to_add.items():
        if col in existing:
            continue
        conn.execute(f"ALTER TABLE listings ADD COLUMN {col} {col_type}")
        added_cols.append(col)
    if added_cols:
        migration_name = "add_listing_columns_v2"
        if not migrator.has_migration(migration_name):
            migrator.record(migration_name, ",".join(added_cols))
