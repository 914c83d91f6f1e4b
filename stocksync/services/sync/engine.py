"""Reconciliation of remote stock against local listings in resumable batches.

One call to :meth:`ReconciliationEngine.run` does a bounded amount of work:

1. Without a saved :class:`BatchState` it fetches the complete remote stock,
   snapshots the ids of every local listing and saves a fresh state.
2. It processes the next ``batch_size`` items, creating or updating listings
   and ingesting their photos. A listing whose content hash is unchanged is
   not rewritten, but its photos are still ingested so earlier download
   failures get another attempt.
3. If items remain it saves the state and reports ``continue``. Otherwise it
   deletes every snapshotted listing that no processed item accounted for,
   writes one audit entry for the whole run and clears the state.

Deletion only ever happens at that last step, against the ids collected
across every batch of the run.
"""

from __future__ import annotations

import time
import traceback
from typing import Any, Callable, Iterable, Protocol

from stocksync.domain.models import (LOG_STATUS_ERROR, LOG_STATUS_SUCCESS,
                                     Failed, ItemOutcome, ListingAttributes,
                                     Ok, RunStatus, Skipped, SyncCounts,
                                     SyncLogEntry, SyncSummary, TriggerType)
from stocksync.infrastructure.db import iso_utcnow
from stocksync.infrastructure.observability import (get_logger, log_context,
                                                    log_exception,
                                                    set_span_attribute,
                                                    trace_span)

from .checkpoint import BatchCheckpoint, BatchState
from .config import SyncConfig
from .errors import FetchFailure, ItemProcessingError, StateCorruption
from .fetcher import PageFetcher
from .mapper import ListingMapper, content_hash
from .media import MediaIngester
from .run_log import RunLogger

logger = get_logger(__name__)

NOT_PUBLISHED_REASON = "NOT_PUBLISHED status"
ITEM_ERRORS_MESSAGE = "Error occurred processing one or more listings. See details."


class ContentRepository(Protocol):
    def find_by_natural_key(self, key: str, vin: str | None = None) -> int | None: ...

    def get_content_hash(self, listing_id: int) -> str | None: ...

    def create(self, attrs: ListingAttributes, content_hash: str | None = None) -> int: ...

    def update(
        self, listing_id: int, attrs: ListingAttributes, content_hash: str | None = None
    ) -> None: ...

    def delete(self, listing_id: int) -> bool: ...

    def list_ids(self) -> list[int]: ...


class SyncReporter(Protocol):
    def report(self, entry: SyncLogEntry) -> bool: ...


class ReconciliationEngine:
    """Stateless engine; all progress lives in the checkpoint store."""

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        listings: ContentRepository,
        checkpoint: BatchCheckpoint,
        media: MediaIngester,
        run_logger: RunLogger,
        config: SyncConfig,
        mapper: ListingMapper | None = None,
        reporter: SyncReporter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.fetcher = fetcher
        self.listings = listings
        self.checkpoint = checkpoint
        self.media = media
        self.run_logger = run_logger
        self.config = config
        self.mapper = mapper or ListingMapper()
        self.reporter = reporter
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self,
        target_id: str | None = None,
        trigger_type: TriggerType | str = TriggerType.MANUAL,
    ) -> SyncSummary:
        target_id = str(target_id or self.config.target_id)
        trigger = TriggerType(trigger_type).value
        invoked_at = self._clock()

        with log_context(target_id=target_id, trigger=trigger), trace_span(
            "sync.run", target_id=target_id, trigger=trigger
        ):
            state: BatchState | None = None
            try:
                state = self.checkpoint.load(target_id)
                if state is None:
                    state = self._start(target_id, trigger)
                else:
                    logger.info(
                        "Resuming sync at item %s of %s",
                        state.current_index,
                        state.total_items,
                    )
                batch_start = state.current_index
                self._process_batch(state)
                set_span_attribute("sync.processed_items", state.processed_items)

                if not state.is_complete:
                    self.checkpoint.save(state)
                    message = "Processed batch {} - {} of {} listings...".format(
                        batch_start + 1, state.current_index, state.total_items
                    )
                    logger.info(message)
                    return SyncSummary(
                        status=RunStatus.CONTINUE,
                        message=message,
                        counts=self._counts(state),
                        processed_items=state.processed_items,
                        total_items=state.total_items,
                    )
                return self._finalize(state)
            except FetchFailure as exc:
                logger.error("Fetching stock failed: %s", exc)
                return self._fail(target_id, trigger, exc, None, invoked_at)
            except StateCorruption as exc:
                logger.error("Saved batch state is unusable: %s", exc)
                return self._fail(target_id, trigger, exc, None, invoked_at)
            except Exception as exc:
                log_exception(logger, "Sync aborted", exc)
                return self._fail(target_id, trigger, exc, state, invoked_at)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _start(self, target_id: str, trigger: str) -> BatchState:
        start_time = self._clock()
        logger.info("Starting %s sync", trigger)
        items = self.fetcher.fetch_all(
            target_id,
            page_size=self.config.page_size,
            max_pages=self.config.max_pages,
        )
        existing_ids = self.listings.list_ids()
        state = self.checkpoint.begin(
            target_id, trigger, items, existing_ids, start_time=start_time
        )
        logger.info(
            "Fetched %s remote items; %s local listings before sync",
            state.total_items,
            len(existing_ids),
        )
        return state

    def _process_batch(self, state: BatchState) -> None:
        batch = state.next_slice(self.config.batch_size)
        for item in batch:
            self._record(state, self.process_item(item))
        state.advance(len(batch))

    def process_item(self, item: dict[str, Any]) -> ItemOutcome:
        """Create, update or skip one remote item. Never raises."""
        natural_key = self.mapper.natural_key(item)
        if self.mapper.is_not_published(item):
            logger.info("Skipping %s: %s", natural_key, NOT_PUBLISHED_REASON)
            return Skipped(natural_key, NOT_PUBLISHED_REASON)

        try:
            mapped = self.mapper.map(item)
            digest = content_hash(mapped)
            existing_id = None
            if not mapped.is_unknown_key:
                existing_id = self.listings.find_by_natural_key(
                    mapped.natural_key, mapped.vin or None
                )
            if existing_id is None:
                listing_id = self.listings.create(mapped.attributes, digest)
                action = "created"
            elif self.listings.get_content_hash(existing_id) == digest:
                listing_id = existing_id
                action = "unchanged"
            else:
                self.listings.update(existing_id, mapped.attributes, digest)
                listing_id = existing_id
                action = "updated"
        except Exception as exc:
            error = ItemProcessingError(natural_key, str(exc))
            logger.warning("Failed to process %s: %s", error.natural_key, error)
            return Failed(natural_key, str(error))

        logger.debug("Listing %s %s (id=%s)", natural_key, action, listing_id)
        media_errors = self._ingest_media(listing_id, mapped.media_refs)
        return Ok(listing_id, action, natural_key, media_errors)

    def _ingest_media(self, listing_id: int, refs: Iterable[str]) -> tuple[str, ...]:
        try:
            return tuple(self.media.ingest(listing_id, refs).errors)
        except Exception as exc:
            log_exception(logger, "Media ingestion failed", exc, listing_id=listing_id)
            return (f"Media ingestion failed: {exc}",)

    @staticmethod
    def _record(state: BatchState, outcome: ItemOutcome) -> None:
        if isinstance(outcome, Ok):
            if outcome.action == "created":
                state.increment("created")
            else:
                state.increment("updated")
                if outcome.action == "unchanged":
                    state.increment("unchanged")
            state.record_processed(outcome.listing_id)
            if outcome.media_errors:
                state.media_errors.setdefault(outcome.natural_key, []).extend(outcome.media_errors)
        elif isinstance(outcome, Skipped):
            state.increment("skipped")
            state.skipped_reasons.setdefault(outcome.natural_key, []).append(outcome.reason)
        elif isinstance(outcome, Failed):
            state.increment("skipped")
            state.skipped_reasons.setdefault(outcome.natural_key, []).append(outcome.reason)
            state.failed_items.append(outcome.natural_key)

    def _finalize(self, state: BatchState) -> SyncSummary:
        deleted = 0
        for listing_id in state.delete_set():
            if self.listings.delete(listing_id):
                deleted += 1
        logger.info("Deleted %s listings no longer in remote stock", deleted)

        counts = self._counts(state, deleted=deleted)
        duration = max(0.0, self._clock() - state.start_time)
        has_errors = bool(state.failed_items)
        entry = SyncLogEntry(
            sync_time=iso_utcnow(),
            sync_type=state.trigger_type,
            target_id=state.target_id,
            created_count=counts.created,
            updated_count=counts.updated,
            deleted_count=counts.deleted,
            skipped_count=counts.skipped,
            status=LOG_STATUS_ERROR if has_errors else LOG_STATUS_SUCCESS,
            duration=round(duration, 2),
            error_message=ITEM_ERRORS_MESSAGE if has_errors else None,
            details=self._details(state),
        )
        log_id = self.run_logger.log(entry)
        self.checkpoint.clear(state.target_id)
        if self.reporter is not None and self.config.email_reports:
            self.reporter.report(entry)

        message = (
            "Sync complete. Total Processed: {}. Created: {}, Updated: {}, "
            "Deleted: {}, Skipped: {}. Total Duration: {:.2f} seconds"
        ).format(
            state.processed_items,
            counts.created,
            counts.updated,
            counts.deleted,
            counts.skipped,
            duration,
        )
        logger.info(message)
        return SyncSummary(
            status=RunStatus.COMPLETED,
            message=message,
            counts=counts,
            processed_items=state.processed_items,
            total_items=state.total_items,
            log_id=log_id,
        )

    def _fail(
        self,
        target_id: str,
        trigger: str,
        exc: BaseException,
        state: BatchState | None,
        invoked_at: float,
    ) -> SyncSummary:
        counts = self._counts(state) if state is not None else SyncCounts()
        started = state.start_time if state is not None else invoked_at
        details = self._details(state) if state is not None else {}
        details["critical_error_trace"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        entry = SyncLogEntry(
            sync_time=iso_utcnow(),
            sync_type=state.trigger_type if state is not None else trigger,
            target_id=target_id,
            created_count=counts.created,
            updated_count=counts.updated,
            deleted_count=counts.deleted,
            skipped_count=counts.skipped,
            status=LOG_STATUS_ERROR,
            duration=round(max(0.0, self._clock() - started), 2),
            error_message=str(exc),
            details=details,
        )
        log_id = self.run_logger.log(entry)
        try:
            self.checkpoint.clear(target_id)
        except Exception as clear_exc:
            log_exception(logger, "Failed to clear batch state", clear_exc)
        if self.reporter is not None and (self.config.report_failures or self.config.email_reports):
            self.reporter.report(entry)

        return SyncSummary(
            status=RunStatus.FAILED,
            message=f"Sync failed: {exc}",
            counts=counts,
            processed_items=state.processed_items if state is not None else 0,
            total_items=state.total_items if state is not None else 0,
            log_id=log_id,
            error=str(exc),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _counts(state: BatchState, deleted: int = 0) -> SyncCounts:
        counts = SyncCounts.from_mapping(state.totals)
        counts.deleted = deleted
        return counts

    @staticmethod
    def _details(state: BatchState) -> dict[str, Any]:
        return {
            "skipped_listings": {k: list(v) for k, v in state.skipped_reasons.items()},
            "media_errors": {k: list(v) for k, v in state.media_errors.items()},
            "unchanged_count": int(state.totals.get("unchanged", 0)),
            "failed_items": list(state.failed_items),
        }
