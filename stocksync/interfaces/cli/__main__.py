"""Entry point for running the stocksync CLI.

This module defines the top-level Click group that aggregates all
subcommands defined in the ``stocksync.interfaces.cli`` package. Executing
``python -m stocksync.interfaces.cli`` invokes this group.
"""

import click

from stocksync.app.config import configure_observability

from .context import build_cli_context
from .history import history
from .schedule import schedule
from .sync import sync


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=str),
    default=None,
    help="Path to config.json (defaults to the project config).",
)
@click.option("--db", "db_path", default=None, help="SQLite database path (overrides config).")
@click.option("--log-level", default=None, help="Logging level, e.g. INFO or DEBUG.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, db_path: str | None, log_level: str | None) -> None:
    """stocksync command-line interface."""
    cli_context = build_cli_context(config_path, db_path)
    configure_observability(cli_context.settings, log_level)
    ctx.obj = cli_context


cli.add_command(sync)
cli.add_command(history)
cli.add_command(schedule)


if __name__ == "__main__":
    cli()
