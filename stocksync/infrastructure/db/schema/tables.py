from __future__ import annotations

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);
"""

SCHEMA_MIGRATIONS_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    applied_at TEXT NOT NULL,
    notes TEXT
);
"""

# "unknown" stock numbers are never matched, so they are exempt from the
# one-listing-per-key index.
SCHEMA_LISTINGS_SQL = """
CREATE TABLE IF NOT EXISTS listings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stock_number TEXT NOT NULL,
    vin_number TEXT,
    title TEXT,
    slug TEXT,
    description TEXT,
    year INTEGER,
    mileage INTEGER,
    engine_size REAL,
    doors INTEGER,
    seats INTEGER,
    price REAL,
    sale_price REAL,
    make TEXT,
    model TEXT,
    body_type TEXT,
    fuel_type TEXT,
    transmission TEXT,
    colour TEXT,
    registration TEXT,
    derivative TEXT,
    dealer_name TEXT,
    dealer_location TEXT,
    autotrader_id TEXT,
    autotrader_last_updated TEXT,
    lifecycle_state TEXT,
    attributes_json TEXT,
    content_hash TEXT,
    primary_media_id INTEGER,
    gallery_media_ids TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    FOREIGN KEY (primary_media_id) REFERENCES media_assets (id) ON DELETE SET NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_listings_stock_number
    ON listings (stock_number) WHERE stock_number <> 'unknown';
CREATE INDEX IF NOT EXISTS idx_listings_vin_number ON listings (vin_number);
"""

SCHEMA_MEDIA_ASSETS_SQL = """
CREATE TABLE IF NOT EXISTS media_assets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_url TEXT NOT NULL UNIQUE,
    local_path TEXT NOT NULL,
    content_type TEXT,
    size_bytes INTEGER,
    sha256 TEXT,
    owner_listing_id INTEGER,
    created_at TEXT NOT NULL,
    FOREIGN KEY (owner_listing_id) REFERENCES listings (id) ON DELETE SET NULL
);
CREATE INDEX IF NOT EXISTS idx_media_assets_owner ON media_assets (owner_listing_id);
"""

SCHEMA_SYNC_STATE_SQL = """
CREATE TABLE IF NOT EXISTS sync_state (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at TEXT
);
"""

SCHEMA_SYNC_LOGS_SQL = """
CREATE TABLE IF NOT EXISTS sync_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sync_time TEXT NOT NULL,
    sync_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    created_count INTEGER NOT NULL DEFAULT 0,
    updated_count INTEGER NOT NULL DEFAULT 0,
    deleted_count INTEGER NOT NULL DEFAULT 0,
    skipped_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    duration REAL NOT NULL DEFAULT 0,
    error_message TEXT,
    details TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_logs_target_id ON sync_logs (target_id);
CREATE INDEX IF NOT EXISTS idx_sync_logs_sync_time ON sync_logs (sync_time);
"""
