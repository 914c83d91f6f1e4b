import json

import pytest

from stocksync.app.config import load_settings
from stocksync.infrastructure.db.config import (CONFIG_ENV_VAR,
                                                DEFAULT_DB_TIMEOUT,
                                                get_default_timeout)
from stocksync.services.sync import SyncConfig


def test_load_settings_resolves_paths_and_sync_options(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "paths": {"db_path": "data/stock.db", "media_dir": "/srv/media"},
                "remote": {"page_size": 50, "page_delay": 0.1, "auth_url": "https://auth.example"},
                "sync": {"target_id": 123, "batch_size": 10, "frequency": "daily", "unknown": 1},
                "logging": {"level": "debug"},
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(config_path)

    assert settings.db_path == (tmp_path / "data" / "stock.db").resolve()
    assert str(settings.media_dir) == "/srv/media"
    assert settings.sync.target_id == "123"
    assert settings.sync.batch_size == 10
    assert settings.sync.page_size == 50
    assert settings.sync.page_delay == 0.1
    assert settings.sync.interval_seconds == 86400
    assert settings.remote["auth_url"] == "https://auth.example"
    assert settings.logging == {"level": "debug"}


def test_missing_config_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.json")

    assert settings.sync == SyncConfig()
    assert settings.db_path == tmp_path / "stocksync.db"


@pytest.mark.parametrize(
    "options",
    [{"frequency": "weekly"}, {"batch_size": 0}, {"page_size": 0}, {"max_pages": 0}],
)
def test_invalid_sync_options_are_rejected(options):
    with pytest.raises(ValueError):
        SyncConfig(**options)


def test_config_location_can_come_from_the_environment(tmp_path, monkeypatch):
    config_path = tmp_path / "elsewhere" / "stocksync.json"
    config_path.parent.mkdir()
    config_path.write_text(
        json.dumps({"paths": {"db_path": "sync.db"}, "db_timeout_seconds": "slow"}),
        encoding="utf-8",
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    settings = load_settings()

    assert settings.db_path == (config_path.parent / "sync.db").resolve()
    assert settings.media_dir == config_path.parent / "media"
    assert get_default_timeout() == DEFAULT_DB_TIMEOUT
