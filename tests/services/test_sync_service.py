import pytest
from fakes import (FakeDownloader, FakeRemoteClient, FakeSink, fast_config,
                   make_item)

from stocksync.domain.models import RunStatus, TriggerType
from stocksync.services.sync import SyncInProgressError
from stocksync.services.sync_service import SyncService, _lock_for


def _service(db_path, tmp_path, items, **config):
    return SyncService.from_sqlite_path(
        str(db_path),
        config=fast_config(target_id="100", **config),
        client=FakeRemoteClient.with_items(items),
        downloader=FakeDownloader(tmp_path / "media"),
        media_dir=tmp_path / "media",
        sink=FakeSink(),
    )


def test_run_until_complete_loops_over_batches(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item(f"S{i}") for i in range(6)], batch_size=4)

    summaries = service.run_until_complete()

    assert [s.status for s in summaries] == [RunStatus.CONTINUE, RunStatus.COMPLETED]
    assert summaries[-1].counts.created == 6


def test_run_until_complete_respects_invocation_cap(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item(f"S{i}") for i in range(6)], batch_size=2)

    summaries = service.run_until_complete(max_invocations=2)

    assert len(summaries) == 2
    status = service.status()
    assert status.in_progress
    assert (status.processed_items, status.total_items) == (4, 6)
    assert status.trigger_type == "manual"


def test_concurrent_run_for_same_target_is_rejected(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item("S1")])
    lock = _lock_for("100")
    lock.acquire()
    try:
        assert service.is_running("100")
        with pytest.raises(SyncInProgressError):
            service.run("100")
        with pytest.raises(SyncInProgressError):
            service.reset("100")
    finally:
        lock.release()

    assert service.run("100").status is RunStatus.COMPLETED


def test_status_reports_last_run_and_reset_clears_state(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item(f"S{i}") for i in range(3)], batch_size=2)

    assert service.status().last_run is None
    service.run()
    assert service.reset() is True
    assert service.reset() is False
    assert not service.status().in_progress

    service.run_until_complete(trigger_type=TriggerType.SCHEDULED)
    last_run = service.status().last_run
    assert last_run.sync_type == "scheduled"
    assert last_run.created_count == 3


def test_history_pages_and_filters(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item("S1")])
    service.run()
    service.run(trigger_type="scheduled")
    service.run()

    page = service.history(page=1, per_page=2)
    assert page.total == 3
    assert page.total_pages == 2
    assert len(page.entries) == 2
    assert page.entries[0].id > page.entries[1].id

    scheduled = service.history(sync_type="scheduled")
    assert [e.sync_type for e in scheduled.entries] == ["scheduled"]
    assert service.history(status="error").total == 0


def test_reporter_is_built_only_with_a_recipient(db_path, tmp_path):
    service = _service(db_path, tmp_path, [make_item("S1")])
    assert service._reporter() is None

    service.config.email_recipient = "ops@example.com"
    reporter = service._reporter()
    assert reporter is not None
    assert reporter.recipient == "ops@example.com"
