from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_ROOT = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from stocksync.infrastructure.db import ensure_schema, get_connection


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "stocksync.db"


@pytest.fixture
def conn(db_path: Path):
    with get_connection(db_path) as connection:
        ensure_schema(connection)
        yield connection
