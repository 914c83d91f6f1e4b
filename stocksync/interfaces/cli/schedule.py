"""CLI command running the scheduled sync trigger in the foreground."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from stocksync.interfaces.cli.context import (build_sync_service,
                                              get_cli_context)
from stocksync.services.scheduler import ScheduledSyncRunner


@click.command(name="schedule")
@click.option("--target", "target_id", default=None, help="Advertiser id (defaults to the configured one).")
@click.option("--once", is_flag=True, help="Trigger a single scheduled invocation and exit.")
@click.pass_context
def schedule(ctx: click.Context, target_id: str | None, once: bool) -> None:
    """Run scheduled syncs at the configured frequency until interrupted."""
    console = Console()
    service = build_sync_service(get_cli_context(ctx))
    if not service.config.enabled:
        console.print("[yellow]Scheduled sync is disabled (sync.enabled is false).[/yellow]")
        return
    runner = ScheduledSyncRunner(service, target_id=target_id)

    if once:
        summary = asyncio.run(runner.run_once())
        if summary is None:
            console.print(f"[yellow]{runner.state.last_error or 'No sync was run.'}[/yellow]")
        else:
            console.print(summary.message)
        return

    console.print(
        f"Scheduled sync running every {service.config.frequency} "
        f"({service.config.interval_seconds}s); press Ctrl+C to stop."
    )

    async def _serve() -> None:
        await runner.start()
        try:
            await runner.wait()
        finally:
            if runner.state.status != "idle":
                await runner.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("Stopped.")
