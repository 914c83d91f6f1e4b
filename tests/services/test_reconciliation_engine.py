import logging

from fakes import (FakeDownloader, FakeRemoteClient, FakeSink, build_engine,
                   fast_config, make_item)

from stocksync.domain.models import ListingAttributes, RunStatus
from stocksync.infrastructure.db import ensure_schema, get_connection
from stocksync.infrastructure.db.repositories import (ListingRepository,
                                                      SyncLogRepository,
                                                      SyncStateRepository)
from stocksync.infrastructure.http import RemoteRequestError
from stocksync.services.reporting import Reporter
from stocksync.services.sync import (BatchCheckpoint, ListingMapper,
                                     RunLogger, state_key)
from stocksync.services.sync.engine import ITEM_ERRORS_MESSAGE

TARGET = "100"


def _seed(conn, stock, vin=""):
    return ListingRepository(conn).create(
        ListingAttributes(stock_number=stock, title=stock, slug=stock.lower(), vin_number=vin)
    )


def _run_to_completion(engine, limit=50):
    summaries = []
    for _ in range(limit):
        summary = engine.run(TARGET)
        summaries.append(summary)
        if not summary.should_continue:
            break
    return summaries


class ExplodingMapper(ListingMapper):
    def __init__(self, bad_key):
        super().__init__()
        self.bad_key = bad_key

    def map(self, item):
        if self.natural_key(item) == self.bad_key:
            raise ValueError("boom")
        return super().map(item)


def test_batches_resume_and_delete_only_at_finalize(conn, tmp_path):
    stale_id = _seed(conn, "GONE")
    items = [make_item(f"S{i}") for i in range(1, 8)]
    client = FakeRemoteClient.with_items(items)
    engine = build_engine(
        conn, client, FakeDownloader(tmp_path / "media"), config=fast_config(batch_size=5)
    )
    listings = ListingRepository(conn)
    logs = SyncLogRepository(conn)

    first = engine.run(TARGET)

    assert first.status is RunStatus.CONTINUE
    assert first.should_continue
    assert first.message == "Processed batch 1 - 5 of 7 listings..."
    assert (first.processed_items, first.total_items) == (5, 7)
    assert listings.get(stale_id) is not None
    assert logs.count() == 0
    assert BatchCheckpoint(SyncStateRepository(conn)).exists(TARGET)

    second = engine.run(TARGET)

    assert second.status is RunStatus.COMPLETED
    assert second.counts.created == 7
    assert second.counts.deleted == 1
    assert second.message.startswith(
        "Sync complete. Total Processed: 7. Created: 7, Updated: 0, Deleted: 1, Skipped: 0."
    )
    assert listings.get(stale_id) is None
    assert listings.count() == 7
    assert len(client.calls) == 1
    assert not BatchCheckpoint(SyncStateRepository(conn)).exists(TARGET)

    entry = logs.get(second.log_id)
    assert entry.status == "success"
    assert entry.sync_type == "manual"
    assert (entry.created_count, entry.deleted_count) == (7, 1)


def test_item_failure_is_isolated_and_marks_run_as_error(conn, tmp_path):
    failing_id = _seed(conn, "S3")
    items = [make_item(f"S{i}") for i in range(1, 6)]
    engine = build_engine(
        conn,
        FakeRemoteClient.with_items(items),
        FakeDownloader(tmp_path / "media"),
        mapper=ExplodingMapper("S3"),
    )

    summary = engine.run(TARGET)

    assert summary.status is RunStatus.COMPLETED
    assert summary.counts.created == 4
    assert summary.counts.skipped == 1
    # A failed item does not account for its existing listing.
    assert summary.counts.deleted == 1
    assert ListingRepository(conn).get(failing_id) is None

    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.status == "error"
    assert entry.error_message == ITEM_ERRORS_MESSAGE
    assert entry.skipped_listings == {"S3": ["Processing error: boom"]}
    assert entry.details["failed_items"] == ["S3"]


def test_fetch_failure_aborts_without_touching_listings(conn, tmp_path):
    kept_id = _seed(conn, "KEEP")
    client = FakeRemoteClient(
        [[make_item("S1"), make_item("S2")], [make_item("S3")]],
        failures={2: RemoteRequestError("Service unavailable", status_code=503)},
    )
    engine = build_engine(
        conn, client, FakeDownloader(tmp_path / "media"), config=fast_config(page_size=2)
    )

    summary = engine.run(TARGET)

    assert summary.status is RunStatus.FAILED
    assert "Failed to fetch stock page" in summary.error
    listings = ListingRepository(conn)
    assert listings.list_ids() == [kept_id]
    assert not BatchCheckpoint(SyncStateRepository(conn)).exists(TARGET)

    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.status == "error"
    assert (entry.created_count, entry.updated_count, entry.deleted_count) == (0, 0, 0)
    assert "Failed to fetch stock page" in entry.error_message
    assert "critical_error_trace" in entry.details


def test_unpublished_items_are_skipped_and_their_listings_removed(conn, tmp_path):
    _seed(conn, "S2")
    items = [make_item("S1"), make_item("S2", status="NOT_PUBLISHED")]
    engine = build_engine(conn, FakeRemoteClient.with_items(items), FakeDownloader(tmp_path / "media"))

    summary = engine.run(TARGET)

    assert summary.status is RunStatus.COMPLETED
    assert (summary.counts.created, summary.counts.skipped, summary.counts.deleted) == (1, 1, 1)
    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.status == "success"
    assert entry.skipped_listings == {"S2": ["NOT_PUBLISHED status"]}
    assert ListingRepository(conn).list_ids(stock_number="S2") == []


def test_second_run_with_same_stock_changes_nothing(conn, tmp_path):
    items = [make_item(f"S{i}") for i in range(1, 4)]
    client = FakeRemoteClient.with_items(items)
    downloader = FakeDownloader(tmp_path / "media")
    listings = ListingRepository(conn)

    build_engine(conn, client, downloader).run(TARGET)
    ids_before = listings.list_ids()
    downloads_before = len(downloader.calls)

    summary = build_engine(conn, client, downloader).run(TARGET)

    assert summary.status is RunStatus.COMPLETED
    assert summary.counts.created == 0
    assert summary.counts.updated == 3
    assert summary.counts.unchanged == 3
    assert summary.counts.deleted == 0
    assert listings.list_ids() == ids_before
    assert len(downloader.calls) == downloads_before
    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.details["unchanged_count"] == 3


def test_changed_content_is_written(conn, tmp_path):
    client = FakeRemoteClient.with_items([make_item("S1", price=10000)])
    downloader = FakeDownloader(tmp_path / "media")
    build_engine(conn, client, downloader).run(TARGET)

    client.pages = [[make_item("S1", price=8500)]]
    summary = build_engine(conn, client, downloader).run(TARGET)

    assert summary.counts.updated == 1
    assert summary.counts.unchanged == 0
    listings = ListingRepository(conn)
    listing = listings.get(listings.list_ids()[0])
    assert listing.attributes["price"] == 8500


def test_vin_matches_listing_whose_stock_number_changed(conn, tmp_path):
    existing_id = _seed(conn, "OLD1", vin="VINX")
    engine = build_engine(
        conn,
        FakeRemoteClient.with_items([make_item("NEW1", vin="VINX")]),
        FakeDownloader(tmp_path / "media"),
    )

    summary = engine.run(TARGET)

    assert (summary.counts.created, summary.counts.updated, summary.counts.deleted) == (0, 1, 0)
    assert ListingRepository(conn).get(existing_id).stock_number == "NEW1"


def test_unknown_keys_always_create_new_listings(conn, tmp_path):
    client = FakeRemoteClient.with_items([make_item(None), make_item(None)])
    downloader = FakeDownloader(tmp_path / "media")

    first = build_engine(conn, client, downloader).run(TARGET)
    second = build_engine(conn, client, downloader).run(TARGET)

    assert first.counts.created == 2
    assert second.counts.created == 2
    assert second.counts.deleted == 2
    assert ListingRepository(conn).count() == 2


def test_batch_size_does_not_change_the_outcome(tmp_path):
    items = [make_item(f"S{i}") for i in range(1, 8)]
    items.append(make_item("S8", status="NOT_PUBLISHED"))
    outcomes = []
    for batch_size in (2, 100):
        db = tmp_path / f"batch_{batch_size}.db"
        with get_connection(db) as conn:
            ensure_schema(conn)
            _seed(conn, "STALE")
            engine = build_engine(
                conn,
                FakeRemoteClient.with_items(items),
                FakeDownloader(tmp_path / f"media_{batch_size}"),
                config=fast_config(batch_size=batch_size),
            )
            summaries = _run_to_completion(engine)
            final = summaries[-1]
            listings = ListingRepository(conn)
            stock = sorted(listings.get(i).stock_number for i in listings.list_ids())
            outcomes.append((len(summaries), final.counts.to_dict(), stock))
            assert final.status is RunStatus.COMPLETED
            counts = final.counts
            assert counts.created + counts.updated + counts.skipped == len(items)

    (runs_small, counts_small, stock_small), (runs_big, counts_big, stock_big) = outcomes
    assert runs_small == 4
    assert runs_big == 1
    assert counts_small == counts_big
    assert stock_small == stock_big == [f"S{i}" for i in range(1, 8)]


def test_corrupt_state_fails_the_run_and_is_cleared(conn, tmp_path):
    SyncStateRepository(conn).set(state_key(TARGET), "{not json")
    client = FakeRemoteClient.with_items([make_item("S1")])
    engine = build_engine(conn, client, FakeDownloader(tmp_path / "media"))

    failed = engine.run(TARGET)

    assert failed.status is RunStatus.FAILED
    assert client.calls == []
    assert SyncStateRepository(conn).get(state_key(TARGET)) is None
    entry = SyncLogRepository(conn).get(failed.log_id)
    assert "not valid JSON" in entry.error_message

    recovered = engine.run(TARGET)
    assert recovered.status is RunStatus.COMPLETED
    assert recovered.counts.created == 1


def test_audit_write_failure_does_not_fail_the_run(conn, tmp_path, caplog):
    class BrokenStore:
        def append(self, entry):
            raise RuntimeError("disk full")

    engine = build_engine(
        conn, FakeRemoteClient.with_items([make_item("S1")]), FakeDownloader(tmp_path / "media")
    )
    engine.run_logger = RunLogger(BrokenStore())

    with caplog.at_level(logging.ERROR, logger="stocksync.sync.fallback"):
        summary = engine.run(TARGET)

    assert summary.status is RunStatus.COMPLETED
    assert summary.log_id is None
    assert any("disk full" in record.getMessage() for record in caplog.records)


def test_reports_are_sent_when_enabled(conn, tmp_path):
    sink = FakeSink()
    engine = build_engine(
        conn,
        FakeRemoteClient.with_items([make_item("S1")]),
        FakeDownloader(tmp_path / "media"),
        config=fast_config(email_reports=True, email_recipient="ops@example.com"),
        reporter=Reporter(sink, "ops@example.com", "Example Motors"),
    )

    engine.run(TARGET)

    assert len(sink.sent) == 1
    recipient, subject, body = sink.sent[0]
    assert recipient == "ops@example.com"
    assert subject.startswith("[Example Motors] AutoTrader Sync Report - ")
    assert "<strong>Created:</strong> 1 listings" in body


def test_only_failures_are_reported_by_default(conn, tmp_path):
    sink = FakeSink()
    reporter = Reporter(sink, "ops@example.com")
    ok_engine = build_engine(
        conn,
        FakeRemoteClient.with_items([make_item("S1")]),
        FakeDownloader(tmp_path / "media"),
        reporter=reporter,
    )
    ok_engine.run(TARGET)
    assert sink.sent == []

    failing_engine = build_engine(
        conn,
        FakeRemoteClient([[make_item("S1")]], failures={1: RemoteRequestError("timeout")}),
        FakeDownloader(tmp_path / "media"),
        reporter=reporter,
    )
    failing_engine.run(TARGET)
    assert len(sink.sent) == 1
    assert "Failed to fetch stock page" in sink.sent[0][2]


def test_report_delivery_failure_is_not_fatal(conn, tmp_path):
    engine = build_engine(
        conn,
        FakeRemoteClient.with_items([make_item("S1")]),
        FakeDownloader(tmp_path / "media"),
        config=fast_config(email_reports=True),
        reporter=Reporter(FakeSink(fail=True), "ops@example.com"),
    )

    summary = engine.run(TARGET)

    assert summary.status is RunStatus.COMPLETED
    assert summary.log_id is not None


def test_unchanged_item_retries_photos_that_failed_before(conn, tmp_path):
    photo = "https://m.atcdn.co.uk/a/media/S1-1.jpg"
    client = FakeRemoteClient.with_items([make_item("S1")])
    broken = FakeDownloader(tmp_path / "media", failures={photo})
    listings = ListingRepository(conn)

    first = build_engine(conn, client, broken).run(TARGET)
    listing_id = listings.list_ids()[0]
    assert listings.get_primary_media(listing_id) is None
    entry = SyncLogRepository(conn).get(first.log_id)
    assert "HTTP 404" in entry.media_errors["S1"][0]

    working = FakeDownloader(tmp_path / "media")
    second = build_engine(conn, client, working).run(TARGET)

    assert second.counts.unchanged == 1
    assert working.calls == [photo]
    assert listings.get_primary_media(listing_id) is not None
    assert SyncLogRepository(conn).get(second.log_id).media_errors == {}

    third_downloader = FakeDownloader(tmp_path / "media")
    build_engine(conn, client, third_downloader).run(TARGET)
    assert third_downloader.calls == []


def test_media_errors_on_updated_item_do_not_fail_it(conn, tmp_path):
    downloader = FakeDownloader(tmp_path / "media")
    client = FakeRemoteClient.with_items([make_item("S1", price=10000)])
    build_engine(conn, client, downloader).run(TARGET)

    client.pages = [[make_item("S1", price=8500, images=["not a url"])]]
    summary = build_engine(conn, client, downloader).run(TARGET)

    assert (summary.counts.updated, summary.counts.skipped, summary.counts.deleted) == (1, 0, 0)
    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.status == "success"
    assert entry.skipped_listings == {}
    assert entry.media_errors == {"S1": ["Invalid image URL: 'not a url'"]}
    listings = ListingRepository(conn)
    listing_id = listings.list_ids()[0]
    assert listings.get(listing_id).attributes["price"] == 8500
    # The primary from the first run survives an update with no usable photos.
    assert listings.get_primary_media(listing_id) is not None
    assert listings.get_gallery(listing_id) == []


def test_every_skip_reason_is_kept_for_repeated_keys(conn, tmp_path):
    items = [
        make_item(None, status="NOT_PUBLISHED"),
        make_item(None, status="NOT_PUBLISHED"),
        make_item("S1"),
    ]
    engine = build_engine(conn, FakeRemoteClient.with_items(items), FakeDownloader(tmp_path / "media"))

    summary = engine.run(TARGET)

    assert summary.counts.skipped == 2
    entry = SyncLogRepository(conn).get(summary.log_id)
    assert entry.skipped_listings == {"unknown": ["NOT_PUBLISHED status", "NOT_PUBLISHED status"]}
    assert sum(len(reasons) for reasons in entry.skipped_listings.values()) == entry.skipped_count
