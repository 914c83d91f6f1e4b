"""Configuration utilities for stocksync.

Settings come from ``config.json`` (see ``config.example.json``) with the
sections ``paths``, ``db``, ``remote``, ``sync``, ``logging`` and ``tracing``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from stocksync.infrastructure.db.config import get_path_config, load_config
from stocksync.infrastructure.observability import (configure_logging,
                                                    configure_tracing)
from stocksync.services.sync import SyncConfig


@dataclass
class AppSettings:
    """Resolved settings shared by the CLI, the API and the scheduler."""

    db_path: Path
    media_dir: Path
    sync: SyncConfig = field(default_factory=SyncConfig)
    remote: dict[str, Any] = field(default_factory=dict)
    logging: dict[str, Any] = field(default_factory=dict)
    tracing: dict[str, Any] = field(default_factory=dict)


def _section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    value = cfg.get(name)
    return dict(value) if isinstance(value, dict) else {}


def load_settings(config_path: str | Path | None = None) -> AppSettings:
    """Build :class:`AppSettings` from ``config_path`` or the project config."""
    cfg = load_config(config_path)
    paths = get_path_config(config_path)
    sync_cfg = _section(cfg, "sync")
    remote_cfg = _section(cfg, "remote")
    # Fetch pacing lives with the remote settings in the file.
    for key in ("page_size", "max_pages", "page_delay"):
        if key in remote_cfg and key not in sync_cfg:
            sync_cfg[key] = remote_cfg[key]
    return AppSettings(
        db_path=paths["db_path"],
        media_dir=paths["media_dir"],
        sync=SyncConfig.from_mapping(sync_cfg),
        remote=remote_cfg,
        logging=_section(cfg, "logging"),
        tracing=_section(cfg, "tracing"),
    )


def configure_observability(settings: AppSettings, log_level: str | None = None) -> None:
    """Apply the ``logging`` and ``tracing`` sections at process startup."""
    configure_logging(
        level=str(log_level or settings.logging.get("level", "INFO")).upper(),
        third_party_level=str(settings.logging.get("third_party_level", "WARNING")).upper(),
    )
    if settings.tracing.get("enabled"):
        configure_tracing(
            service_name=settings.tracing.get("service_name", "stocksync"),
            endpoint=settings.tracing.get("endpoint"),
            sample_rate=float(settings.tracing.get("sample_rate", 1.0)),
        )


__all__ = ["AppSettings", "configure_observability", "load_settings"]
