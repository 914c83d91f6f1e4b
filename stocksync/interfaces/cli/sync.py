"""Synchronization CLI for stocksync."""

from __future__ import annotations

from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

from stocksync.domain.models import RunStatus, SyncSummary, TriggerType
from stocksync.interfaces.cli.context import (build_sync_service,
                                              get_cli_context)
from stocksync.services.sync import SyncInProgressError


def _print_summary(console: Console, summary: SyncSummary) -> None:
    colour = {
        RunStatus.CONTINUE: "yellow",
        RunStatus.COMPLETED: "green",
        RunStatus.FAILED: "red",
    }[summary.status]
    console.print(f"[{colour}]{summary.message}[/{colour}]")
    counts = summary.counts
    console.print(
        f"  created={counts.created} updated={counts.updated} "
        f"(unchanged={counts.unchanged}) deleted={counts.deleted} skipped={counts.skipped} "
        f"progress={summary.processed_items}/{summary.total_items}"
    )
    if summary.log_id is not None:
        console.print(f"  log entry #{summary.log_id}")


@click.group(name="sync")
def sync() -> None:
    """Run and inspect stock synchronization."""


@sync.command(name="run")
@click.option("--target", "target_id", default=None, help="Advertiser id to sync (defaults to the configured one).")
@click.option("--batch-size", type=int, default=None, help="Items processed per invocation (overrides config).")
@click.option(
    "--until-complete",
    is_flag=True,
    default=False,
    help="Keep invoking the engine until the run completes or fails.",
)
@click.pass_context
def run_sync(ctx: click.Context, target_id: str | None, batch_size: int | None, until_complete: bool) -> None:
    """Trigger a manual sync invocation.

    Without ``--until-complete`` one batch is processed and the command
    reports whether another invocation is needed.
    """
    console = Console()
    if batch_size is not None and batch_size < 1:
        raise click.BadParameter("must be at least 1", param_hint="--batch-size")
    service = build_sync_service(get_cli_context(ctx), batch_size=batch_size)
    try:
        with console.status("Running sync..."):
            if until_complete:
                summaries = service.run_until_complete(target_id, TriggerType.MANUAL)
            else:
                summaries = [service.run(target_id, TriggerType.MANUAL)]
    except SyncInProgressError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(2)
        return

    for summary in summaries:
        _print_summary(console, summary)
    final = summaries[-1]
    if final.status is RunStatus.FAILED:
        ctx.exit(1)
    elif final.should_continue:
        console.print("Run [bold]stocksync sync run[/bold] again to process the next batch.")


@sync.command(name="status")
@click.option("--target", "target_id", default=None, help="Advertiser id (defaults to the configured one).")
@click.pass_context
def sync_status(ctx: click.Context, target_id: str | None) -> None:
    """Show saved batch progress and the last recorded run."""
    console = Console()
    status = build_sync_service(get_cli_context(ctx)).status(target_id)

    table = Table(title=f"Sync status for {status.target_id}", show_header=False)
    table.add_row("Batch in progress", "yes" if status.in_progress else "no")
    if status.corrupted:
        table.add_row("Saved state", "[red]corrupt (run `stocksync sync reset`)[/red]")
    if status.in_progress:
        table.add_row("Progress", f"{status.processed_items}/{status.total_items}")
        table.add_row("Trigger", status.trigger_type or "-")
        if status.started_at is not None:
            started = datetime.fromtimestamp(status.started_at, tz=timezone.utc)
            table.add_row("Started", started.strftime("%Y-%m-%d %H:%M:%S UTC"))
    if status.last_run is not None:
        last = status.last_run
        table.add_row("Last run", f"{last.sync_time} ({last.sync_type})")
        table.add_row("Last status", last.status)
        table.add_row(
            "Last counts",
            f"created={last.created_count} updated={last.updated_count} "
            f"deleted={last.deleted_count} skipped={last.skipped_count}",
        )
    else:
        table.add_row("Last run", "never")
    console.print(table)


@sync.command(name="reset")
@click.option("--target", "target_id", default=None, help="Advertiser id (defaults to the configured one).")
@click.pass_context
def sync_reset(ctx: click.Context, target_id: str | None) -> None:
    """Discard saved batch progress so the next run starts from a fresh fetch."""
    console = Console()
    try:
        existed = build_sync_service(get_cli_context(ctx)).reset(target_id)
    except SyncInProgressError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(2)
        return
    if existed:
        console.print("[green]Saved batch state discarded.[/green]")
    else:
        console.print("No saved batch state.")
