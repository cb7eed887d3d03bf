from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_config(path: str | Path) -> dict:
    """Read a yaml config. An empty file is an empty config; a missing one is an error."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"config not found: {path}")
    return yaml.safe_load(path.read_text()) or {}


def get_section(cfg: dict, *keys: str, default: Any = None) -> Any:
    """cfg[k1][k2]... with `default` for any missing level."""
    cur: Any = cfg
    for k in keys:
        if not isinstance(cur, dict) or k not in cur or cur[k] is None:
            return default
        cur = cur[k]
    return cur
