"""CLI interface facades for stocksync.

This package is the canonical home for all Click commands.
"""

from .__main__ import cli
from .history import history
from .schedule import schedule
from .sync import sync

__all__ = [
    "cli",
    "history",
    "schedule",
    "sync",
]
