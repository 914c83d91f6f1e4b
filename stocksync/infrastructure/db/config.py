"""Reading ``config.json`` for the storage layer.

The file lives at the project root unless ``STOCKSYNC_CONFIG`` points
elsewhere. A missing file is not an error: every reader falls back to
its defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

CONFIG_ENV_VAR = "STOCKSYNC_CONFIG"
DEFAULT_DB_TIMEOUT = 30.0
DEFAULT_PATHS = {"db_path": "stocksync.db", "media_dir": "media"}

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def config_file(config_path: Path | str | None = None) -> Path:
    if config_path is not None:
        return Path(config_path)
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else _PROJECT_ROOT / "config.json"


def load_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Return the parsed config file, or ``{}`` when there is none."""
    path = config_file(config_path)
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, dict) else {}


def get_path_config(config_path: Path | str | None = None) -> Dict[str, Path]:
    """Resolve ``paths.db_path`` and ``paths.media_dir``.

    Relative entries are taken relative to the directory holding the config
    file, never the working directory.
    """
    path = config_file(config_path)
    base = path.parent
    section = load_config(path).get("paths")
    configured = section if isinstance(section, dict) else {}

    resolved: Dict[str, Path] = {}
    for key, default in DEFAULT_PATHS.items():
        raw = configured.get(key)
        if not raw:
            resolved[key] = base / default
            continue
        value = Path(raw)
        resolved[key] = value if value.is_absolute() else (base / value).resolve()
    return resolved


def get_default_timeout(config_path: Path | str | None = None) -> float:
    """``db_timeout_seconds`` from the config, for sqlite's busy timeout."""
    try:
        return float(load_config(config_path).get("db_timeout_seconds", DEFAULT_DB_TIMEOUT))
    except (TypeError, ValueError):
        return DEFAULT_DB_TIMEOUT
