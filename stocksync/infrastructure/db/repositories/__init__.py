from .base import BaseRepository
from .listings import ListingRepository
from .media import MediaAsset, MediaRepository
from .state import SyncStateRepository
from .sync_logs import SyncLogRepository

__all__ = [
    "BaseRepository",
    "ListingRepository",
    "MediaAsset",
    "MediaRepository",
    "SyncLogRepository",
    "SyncStateRepository",
]
