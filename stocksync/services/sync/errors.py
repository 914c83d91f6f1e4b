"""Error taxonomy for the sync engine.

Only :class:`FetchFailure` and :class:`StateCorruption` abort a run. The
others describe problems that are recorded against a single item, image or
audit write while the run carries on.
"""

from __future__ import annotations

from typing import Literal

FetchFailureReason = Literal["auth", "http", "malformed"]


class SyncError(Exception):
    """Base class for sync engine errors."""


class FetchFailure(SyncError):
    """Retrieving the remote stock failed; nothing fetched is used."""

    def __init__(self, reason: FetchFailureReason, message: str, page: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.page = page

    def __str__(self) -> str:
        base = super().__str__()
        if self.page is not None:
            return f"{base} (reason={self.reason}, page={self.page})"
        return f"{base} (reason={self.reason})"


class ItemProcessingError(SyncError):
    """Mapping or persisting one remote item failed."""

    def __init__(self, natural_key: str, message: str) -> None:
        super().__init__(message)
        self.natural_key = natural_key


class MediaError(SyncError):
    """Downloading or attaching one media reference failed."""

    def __init__(self, source_url: str, message: str) -> None:
        super().__init__(message)
        self.source_url = source_url


class StateCorruption(SyncError):
    """A stored batch checkpoint cannot be resumed."""


class LoggingFailure(SyncError):
    """Writing a run audit entry failed."""


class SyncInProgressError(SyncError):
    """A run for the same target is already executing."""

    def __init__(self, target_id: str) -> None:
        super().__init__(f"A sync for target {target_id} is already running")
        self.target_id = target_id


__all__ = [
    "FetchFailure",
    "FetchFailureReason",
    "ItemProcessingError",
    "LoggingFailure",
    "MediaError",
    "StateCorruption",
    "SyncError",
    "SyncInProgressError",
]
