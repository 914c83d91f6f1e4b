"""Domain model package.

This package contains the listing, outcome and run models for stocksync.
"""

from .listing import (UNKNOWN_NATURAL_KEY, ListingAttributes, LocalListing,
                      MappedListing)
from .outcome import Failed, ItemOutcome, Ok, Skipped
from .run import (LOG_STATUS_ERROR, LOG_STATUS_SUCCESS, RunStatus, SyncCounts,
                  SyncLogEntry, SyncSummary, TriggerType,
                  reason_lists)

__all__ = [
    "Failed",
    "ItemOutcome",
    "ListingAttributes",
    "LocalListing",
    "LOG_STATUS_ERROR",
    "LOG_STATUS_SUCCESS",
    "MappedListing",
    "Ok",
    "RunStatus",
    "Skipped",
    "SyncCounts",
    "SyncLogEntry",
    "SyncSummary",
    "TriggerType",
    "UNKNOWN_NATURAL_KEY",
    "reason_lists",
]
