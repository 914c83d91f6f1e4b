"""Run-level models: counts, audit entries and the summary returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TriggerType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class RunStatus(str, Enum):
    """Outcome of one ``run()`` invocation."""

    CONTINUE = "continue"
    COMPLETED = "completed"
    FAILED = "failed"


LOG_STATUS_SUCCESS = "success"
LOG_STATUS_ERROR = "error"


def reason_lists(raw: Any) -> dict[str, list[str]]:
    """Normalize a key-to-reasons mapping; a bare string becomes a one-item list."""
    if not isinstance(raw, dict):
        return {}
    return {
        str(key): [value] if isinstance(value, str) else [str(v) for v in value or []]
        for key, value in raw.items()
    }


@dataclass
class SyncCounts:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    unchanged: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "SyncCounts":
        data = data or {}
        return cls(
            created=int(data.get("created", 0) or 0),
            updated=int(data.get("updated", 0) or 0),
            deleted=int(data.get("deleted", 0) or 0),
            skipped=int(data.get("skipped", 0) or 0),
            unchanged=int(data.get("unchanged", 0) or 0),
        )


@dataclass(frozen=True)
class SyncLogEntry:
    """Immutable audit record written once per completed or failed run."""

    sync_time: str
    sync_type: str
    target_id: str
    created_count: int
    updated_count: int
    deleted_count: int
    skipped_count: int
    status: str
    duration: float
    error_message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    @property
    def skipped_listings(self) -> dict[str, list[str]]:
        return reason_lists(self.details.get("skipped_listings"))

    @property
    def media_errors(self) -> dict[str, list[str]]:
        return dict(self.details.get("media_errors") or {})


@dataclass
class SyncSummary:
    """What a caller gets back from ``ReconciliationEngine.run``."""

    status: RunStatus
    message: str
    counts: SyncCounts = field(default_factory=SyncCounts)
    processed_items: int = 0
    total_items: int = 0
    log_id: int | None = None
    error: str | None = None

    @property
    def should_continue(self) -> bool:
        return self.status is RunStatus.CONTINUE

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "counts": self.counts.to_dict(),
            "processed_items": self.processed_items,
            "total_items": self.total_items,
            "log_id": self.log_id,
            "error": self.error,
            "continue": self.should_continue,
        }
