"""CLI command listing recorded sync runs."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from stocksync.domain.models import reason_lists
from stocksync.interfaces.cli.context import (build_sync_service,
                                              get_cli_context)


@click.command(name="history")
@click.option("--page", type=int, default=1, show_default=True, help="Page number (newest first).")
@click.option("--per-page", type=int, default=20, show_default=True, help="Entries per page.")
@click.option("--status", type=click.Choice(["success", "error"]), default=None, help="Only show runs with this status.")
@click.option("--target", "target_id", default=None, help="Only show runs for this advertiser id.")
@click.option("--details", is_flag=True, help="Print skipped listings and media errors per run.")
@click.option("--json-output", is_flag=True, help="Output the page as JSON.")
@click.pass_context
def history(
    ctx: click.Context,
    page: int,
    per_page: int,
    status: str | None,
    target_id: str | None,
    details: bool,
    json_output: bool,
) -> None:
    """Show the sync run history."""
    service = build_sync_service(get_cli_context(ctx))
    result = service.history(page, per_page, status=status, target_id=target_id)
    if json_output:
        click.echo(json.dumps(result.model_dump(), indent=2))
        return

    console = Console()
    if not result.entries:
        console.print("No sync runs recorded.")
        return

    table = Table(title=f"Sync history (page {result.page} of {result.total_pages}, {result.total} runs)")
    for column in ("ID", "Time", "Type", "Target", "Created", "Updated", "Deleted", "Skipped", "Status", "Duration"):
        table.add_column(column)
    for entry in result.entries:
        status_markup = "[green]success[/green]" if entry.status == "success" else f"[red]{entry.status}[/red]"
        table.add_row(
            str(entry.id),
            entry.sync_time,
            entry.sync_type,
            entry.target_id,
            str(entry.created_count),
            str(entry.updated_count),
            str(entry.deleted_count),
            str(entry.skipped_count),
            status_markup,
            f"{entry.duration:.2f}s",
        )
    console.print(table)

    if details:
        for entry in result.entries:
            skipped = reason_lists(entry.details.get("skipped_listings"))
            media_errors = entry.details.get("media_errors") or {}
            if not (entry.error_message or skipped or media_errors):
                continue
            console.print(f"\n[bold]Run #{entry.id}[/bold]")
            if entry.error_message:
                console.print(f"  [red]{entry.error_message}[/red]")
            for key, reasons in skipped.items():
                for reason in reasons:
                    console.print(f"  skipped {key}: {reason}")
            for key, messages in media_errors.items():
                for message in messages:
                    console.print(f"  media {key}: {message}")
