"""Shared helpers for composing CLI command contexts.

This module resolves settings once per invocation and builds the
:class:`SyncService` every command works through.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

import click

from stocksync.app.config import AppSettings, load_settings
from stocksync.services.sync_service import SyncService


@dataclass(frozen=True)
class CLIContext:
    """Container for resolved settings and the database path in use."""

    settings: AppSettings
    db_path: Path


def build_cli_context(config_path: str | None = None, db_path: str | None = None) -> CLIContext:
    settings = load_settings(config_path)
    resolved_db = Path(db_path) if db_path else settings.db_path
    return CLIContext(settings=settings, db_path=resolved_db)


def build_sync_service(cli_context: CLIContext, batch_size: int | None = None) -> SyncService:
    """Return a SyncService wired to the CLI context configuration."""
    config = cli_context.settings.sync
    if batch_size is not None:
        config = replace(config, batch_size=batch_size)
    return SyncService.from_sqlite_path(
        str(cli_context.db_path),
        config=config,
        remote=cli_context.settings.remote,
        media_dir=cli_context.settings.media_dir,
    )


def get_cli_context(ctx: click.Context) -> CLIContext:
    """Return the CLI context stored on the root group, building it if needed."""
    root = ctx.find_root()
    if not isinstance(root.obj, CLIContext):
        root.obj = build_cli_context()
    return root.obj
