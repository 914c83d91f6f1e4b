"""
Centralized DTOs for the sync services and the HTTP API.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from stocksync.domain.models import SyncLogEntry, SyncSummary


# --- Run DTOs ---
class SyncRunRequestDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_id: str | None = None
    trigger_type: Literal["manual", "scheduled"] = "manual"
    until_complete: bool = False


class SyncCountsDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    unchanged: int = 0


class SyncSummaryDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal["continue", "completed", "failed"]
    message: str
    counts: SyncCountsDTO
    processed_items: int
    total_items: int
    log_id: int | None = None
    error: str | None = None
    should_continue: bool = Field(default=False, alias="continue")

    @classmethod
    def from_summary(cls, summary: SyncSummary) -> "SyncSummaryDTO":
        return cls.model_validate(summary.to_dict())


# --- History DTOs ---
class SyncLogEntryDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int | None = None
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
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: SyncLogEntry) -> "SyncLogEntryDTO":
        return cls(
            id=entry.id,
            sync_time=entry.sync_time,
            sync_type=entry.sync_type,
            target_id=entry.target_id,
            created_count=entry.created_count,
            updated_count=entry.updated_count,
            deleted_count=entry.deleted_count,
            skipped_count=entry.skipped_count,
            status=entry.status,
            duration=entry.duration,
            error_message=entry.error_message,
            details=dict(entry.details),
        )


class SyncHistoryPageDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entries: list[SyncLogEntryDTO]
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.per_page))


# --- Status DTOs ---
class SyncStatusDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_id: str
    running: bool = False
    in_progress: bool = False
    corrupted: bool = False
    processed_items: int = 0
    total_items: int = 0
    trigger_type: str | None = None
    started_at: float | None = None
    last_run: SyncLogEntryDTO | None = None
