"""Stock synchronization engine.

Public API:
  - ReconciliationEngine – batch-resumable create/update/delete of listings
  - PageFetcher – fail-closed paginated fetch of remote stock
  - ListingMapper / content_hash – remote item to listing attributes
  - BatchCheckpoint / BatchState – progress saved between invocations
  - MediaIngester – photo download, dedup and gallery wiring
  - RunLogger – append-only audit trail
  - SyncConfig – explicit per-run options
"""

from .checkpoint import BatchCheckpoint, BatchState, state_key
from .config import FREQUENCY_SECONDS, SyncConfig
from .engine import ReconciliationEngine
from .errors import (FetchFailure, ItemProcessingError, LoggingFailure,
                     MediaError, StateCorruption, SyncError,
                     SyncInProgressError)
from .fetcher import PageFetcher
from .mapper import ListingMapper, content_hash
from .media import MediaIngester, MediaIngestResult
from .run_log import RunLogger

__all__ = [
    # === Engine
    "ReconciliationEngine",
    "SyncConfig",
    "FREQUENCY_SECONDS",
    # === Collaborators
    "BatchCheckpoint",
    "BatchState",
    "ListingMapper",
    "MediaIngester",
    "MediaIngestResult",
    "PageFetcher",
    "RunLogger",
    "content_hash",
    "state_key",
    # === Errors
    "FetchFailure",
    "ItemProcessingError",
    "LoggingFailure",
    "MediaError",
    "StateCorruption",
    "SyncError",
    "SyncInProgressError",
]
