"""Explicit options for one sync run."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

DEFAULT_TARGET_ID = "10012495"
DEFAULT_BATCH_SIZE = 5

FREQUENCY_SECONDS = {
    "hourly": 3600,
    "twicedaily": 43200,
    "daily": 86400,
}


@dataclass
class SyncConfig:
    """Everything the engine and its triggers need to know.

    Built once by the caller and passed into ``run()``; nothing inside the
    engine reads global settings.
    """

    target_id: str = DEFAULT_TARGET_ID
    enabled: bool = False
    frequency: str = "hourly"
    batch_size: int = DEFAULT_BATCH_SIZE
    page_size: int = 100
    max_pages: int | None = None
    page_delay: float = 0.5
    download_delay: float = 0.2
    email_reports: bool = False
    report_failures: bool = True
    email_recipient: str = ""
    site_name: str = "Stock Sync"
    batch_interval_seconds: float = 60.0
    smtp: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCY_SECONDS:
            raise ValueError(
                f"Unknown sync frequency {self.frequency!r}; "
                f"expected one of {', '.join(FREQUENCY_SECONDS)}"
            )
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be at least 1 when set")

    @property
    def interval_seconds(self) -> int:
        return FREQUENCY_SECONDS[self.frequency]

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "SyncConfig":
        """Build a config from a ``sync`` section, ignoring unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if "target_id" in kwargs:
            kwargs["target_id"] = str(kwargs["target_id"])
        return cls(**kwargs)
