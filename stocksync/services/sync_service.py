"""Wiring of the sync engine to sqlite, HTTP and SMTP, plus history queries."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from stocksync.domain.models import SyncSummary, TriggerType
from stocksync.infrastructure.db import ensure_schema, get_path_config
from stocksync.infrastructure.db.repositories import (ListingRepository,
                                                      MediaRepository,
                                                      SyncLogRepository,
                                                      SyncStateRepository)
from stocksync.infrastructure.http import ApiCredentials, AutoTraderClient
from stocksync.infrastructure.notifications import (NotificationSink,
                                                    SmtpNotificationSink,
                                                    SmtpSettings)
from stocksync.infrastructure.persistence.media import MediaDownloader
from stocksync.services.base import BaseService, ConnectionFactory
from stocksync.services.dto import (SyncHistoryPageDTO, SyncLogEntryDTO,
                                    SyncStatusDTO)
from stocksync.services.reporting import Reporter
from stocksync.services.sync import (BatchCheckpoint, MediaIngester,
                                     PageFetcher, ReconciliationEngine,
                                     RunLogger, StateCorruption, SyncConfig,
                                     SyncInProgressError)
from stocksync.services.sync.fetcher import RemoteClient
from stocksync.services.sync.media import Downloader

_locks_guard = threading.Lock()
_target_locks: dict[str, threading.Lock] = {}


def _lock_for(target_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _target_locks.get(target_id)
        if lock is None:
            lock = _target_locks[target_id] = threading.Lock()
        return lock


class SyncService(BaseService):
    """Coordinate sync runs for one or more advertiser targets.

    Only one run per target executes at a time within this process; an
    overlapping call raises :class:`SyncInProgressError` instead of waiting,
    because two runs would race on the same saved batch state.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        config: SyncConfig | None = None,
        remote: dict[str, Any] | None = None,
        media_dir: str | Path | None = None,
        client: RemoteClient | None = None,
        downloader: Downloader | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        super().__init__(connection_factory)
        self.config = config or SyncConfig()
        self._remote = dict(remote or {})
        self._media_dir = Path(media_dir) if media_dir else get_path_config()["media_dir"]
        self._client = client
        self._downloader = downloader
        self._sink = sink

    @classmethod
    def from_sqlite_path(cls, db_path: str, **kwargs: Any) -> "SyncService":
        return cls(cls.sqlite_factory(db_path), **kwargs)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def client(self) -> RemoteClient:
        if self._client is None:
            credentials = ApiCredentials.from_env()
            credentials.key = self._remote.get("api_key") or credentials.key
            credentials.secret = self._remote.get("api_secret") or credentials.secret
            kwargs: dict[str, Any] = {"credentials": credentials}
            for key in ("auth_url", "stock_url"):
                if self._remote.get(key):
                    kwargs[key] = self._remote[key]
            if self._remote.get("timeout"):
                kwargs["timeout"] = float(self._remote["timeout"])
            self._client = AutoTraderClient(**kwargs)
        return self._client

    @property
    def downloader(self) -> Downloader:
        if self._downloader is None:
            self._downloader = MediaDownloader(self._media_dir)
        return self._downloader

    def _reporter(self) -> Reporter | None:
        if not self.config.email_recipient:
            return None
        sink = self._sink or SmtpNotificationSink(SmtpSettings.from_mapping(self.config.smtp))
        return Reporter(sink, self.config.email_recipient, self.config.site_name)

    def build_engine(self, conn: sqlite3.Connection) -> ReconciliationEngine:
        listings = ListingRepository(conn)
        return ReconciliationEngine(
            fetcher=PageFetcher(self.client, page_delay=self.config.page_delay),
            listings=listings,
            checkpoint=BatchCheckpoint(SyncStateRepository(conn)),
            media=MediaIngester(
                listings,
                MediaRepository(conn),
                self.downloader,
                download_delay=self.config.download_delay,
            ),
            run_logger=RunLogger(SyncLogRepository(conn)),
            config=self.config,
            reporter=self._reporter(),
        )

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    @contextmanager
    def _single_flight(self, target_id: str) -> Iterator[None]:
        lock = _lock_for(target_id)
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(target_id)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, target_id: str | None = None) -> bool:
        return _lock_for(str(target_id or self.config.target_id)).locked()

    def run(
        self,
        target_id: str | None = None,
        trigger_type: TriggerType | str = TriggerType.MANUAL,
    ) -> SyncSummary:
        """Run one engine invocation (one batch, or the finalization)."""
        target = str(target_id or self.config.target_id)
        with self._single_flight(target):
            with self._connection_factory() as conn:
                ensure_schema(conn)
                summary = self.build_engine(conn).run(target, trigger_type)
        self._logger.info("Sync %s for %s: %s", summary.status.value, target, summary.message)
        return summary

    def run_until_complete(
        self,
        target_id: str | None = None,
        trigger_type: TriggerType | str = TriggerType.MANUAL,
        max_invocations: int | None = None,
    ) -> list[SyncSummary]:
        """Invoke :meth:`run` until the run completes or fails."""
        summaries: list[SyncSummary] = []
        while True:
            summary = self.run(target_id, trigger_type)
            summaries.append(summary)
            if not summary.should_continue:
                break
            if max_invocations is not None and len(summaries) >= max_invocations:
                break
        return summaries

    # ------------------------------------------------------------------
    # State and history
    # ------------------------------------------------------------------

    def status(self, target_id: str | None = None) -> SyncStatusDTO:
        target = str(target_id or self.config.target_id)

        def _load(conn: sqlite3.Connection) -> SyncStatusDTO:
            status = SyncStatusDTO(target_id=target, running=self.is_running(target))
            try:
                state = BatchCheckpoint(SyncStateRepository(conn)).load(target)
            except StateCorruption as exc:
                self._logger.warning("Batch state for %s is corrupt: %s", target, exc)
                status.corrupted = True
                state = None
            if state is not None:
                status.in_progress = True
                status.processed_items = state.processed_items
                status.total_items = state.total_items
                status.trigger_type = state.trigger_type
                status.started_at = state.start_time
            latest = SyncLogRepository(conn).query({"target_id": target}, page=1, per_page=1)
            if latest:
                status.last_run = SyncLogEntryDTO.from_entry(latest[0])
            return status

        return self._with_connection(_load)

    def reset(self, target_id: str | None = None) -> bool:
        """Discard saved batch state. Returns whether any existed."""
        target = str(target_id or self.config.target_id)
        if self.is_running(target):
            raise SyncInProgressError(target)

        def _clear(conn: sqlite3.Connection) -> bool:
            checkpoint = BatchCheckpoint(SyncStateRepository(conn))
            existed = checkpoint.exists(target)
            checkpoint.clear(target)
            return existed

        existed = self._with_connection(_clear)
        if existed:
            self._logger.info("Discarded saved batch state for %s", target)
        return existed

    def history(
        self,
        page: int = 1,
        per_page: int = 20,
        *,
        status: str | None = None,
        sync_type: str | None = None,
        target_id: str | None = None,
    ) -> SyncHistoryPageDTO:
        filters = {"status": status, "sync_type": sync_type, "target_id": target_id}
        page = max(1, page)
        per_page = max(1, per_page)

        def _query(conn: sqlite3.Connection) -> SyncHistoryPageDTO:
            run_logger = RunLogger(SyncLogRepository(conn))
            entries = run_logger.query(filters, page=page, per_page=per_page)
            return SyncHistoryPageDTO(
                entries=[SyncLogEntryDTO.from_entry(e) for e in entries],
                page=page,
                per_page=per_page,
                total=run_logger.count(filters),
            )

        return self._with_connection(_query)
