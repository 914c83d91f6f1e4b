"""Scheduled trigger that keeps invoking the sync engine on an interval.

While a run reports ``continue`` the runner comes back after the short batch
interval; once a run completes or fails it waits for the configured
frequency (hourly, twice daily or daily) before starting the next one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal, Protocol

from stocksync.domain.models import SyncSummary, TriggerType
from stocksync.infrastructure.db import iso_utcnow
from stocksync.infrastructure.observability import get_logger
from stocksync.services.sync import SyncConfig, SyncInProgressError

SchedulerStatus = Literal["idle", "running", "stopping"]


class SyncRunner(Protocol):
    config: SyncConfig

    def run(self, target_id: str | None = None, trigger_type: TriggerType | str = ...) -> SyncSummary: ...


@dataclass
class SchedulerState:
    """Current state snapshot for the scheduled runner."""

    status: SchedulerStatus = "idle"
    runs: int = 0
    last_run_at: str | None = None
    last_summary: SyncSummary | None = None
    last_error: str | None = None
    next_delay_seconds: float | None = None


class ScheduledSyncRunner:
    """Background worker that triggers scheduled sync invocations."""

    def __init__(self, service: SyncRunner, *, target_id: str | None = None) -> None:
        self._service = service
        self._target_id = target_id
        self._logger = get_logger(__name__)
        self._state = SchedulerState()
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def config(self) -> SyncConfig:
        return self._service.config

    def next_delay(self, summary: SyncSummary | None) -> float:
        if summary is not None and summary.should_continue:
            return float(self.config.batch_interval_seconds)
        return float(self.config.interval_seconds)

    async def run_once(self) -> SyncSummary | None:
        """Trigger one scheduled invocation if scheduling is enabled."""
        if not self.config.enabled:
            self._logger.info("Scheduled sync is disabled; skipping")
            return None

        self._state.last_run_at = iso_utcnow()
        self._state.runs += 1
        try:
            summary = await asyncio.to_thread(
                self._service.run, self._target_id, TriggerType.SCHEDULED
            )
        except SyncInProgressError as exc:
            self._logger.info("Skipping scheduled sync: %s", exc)
            self._state.last_error = str(exc)
            return None

        self._state.last_summary = summary
        self._state.last_error = summary.error
        self._logger.info("Scheduled sync %s: %s", summary.status.value, summary.message)
        return summary

    async def start(self) -> SchedulerState:
        async with self._lock:
            if self._task is not None and not self._task.done():
                raise RuntimeError("Scheduled sync is already running")
            self._stop_event.clear()
            self._state.status = "running"
            self._task = asyncio.create_task(self._run_loop())
            self._logger.info(
                "Scheduled sync started (frequency=%s)", self.config.frequency
            )
            return self._state

    async def stop(self) -> SchedulerState:
        async with self._lock:
            self._stop_event.set()
            self._state.status = "stopping"
        if self._task is not None:
            await self._task
        async with self._lock:
            self._task = None
            self._state.status = "idle"
            self._logger.info("Scheduled sync stopped")
            return self._state

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            summary: SyncSummary | None = None
            try:
                summary = await self.run_once()
            except Exception as exc:
                self._logger.exception("Scheduled sync failed: %s", exc)
                self._state.last_error = str(exc)

            delay = self.next_delay(summary)
            self._state.next_delay_seconds = delay
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
        self._state.status = "idle"
