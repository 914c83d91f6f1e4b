"""Shared FastAPI dependencies for stocksync application components."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from stocksync.app.config import AppSettings, load_settings
from stocksync.services.sync_service import SyncService

__all__ = [
    "get_settings",
    "get_sync_service",
    "SettingsDep",
    "SyncServiceDep",
]


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load settings once per process."""
    return load_settings()


@lru_cache(maxsize=1)
def _sync_service() -> SyncService:
    settings = get_settings()
    return SyncService.from_sqlite_path(
        str(settings.db_path),
        config=settings.sync,
        remote=settings.remote,
        media_dir=settings.media_dir,
    )


def get_sync_service() -> SyncService:
    return _sync_service()


SettingsDep = Annotated[AppSettings, Depends(get_settings)]
SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]
