"""Suite defaults read from the repository's .env.defaults file.

Environment variables always win; the file only fills gaps so a fresh
checkout runs against a local stack without exporting anything.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional


def _defaults_path() -> Path:
    override = os.getenv("E2E_ENV_DEFAULTS")
    if override:
        return Path(override)
    return Path(__file__).resolve().parents[1] / ".env.defaults"


@lru_cache(maxsize=1)
def _load_env_defaults() -> Dict[str, str]:
    env_defaults = _defaults_path()
    if not env_defaults.exists():
        return {}

    defaults: Dict[str, str] = {}
    for raw in env_defaults.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        defaults[key.strip()] = value
    return defaults


def get_env_default(key: str) -> Optional[str]:
    return _load_env_defaults().get(key)


def clear_cache() -> None:
    """Forget the parsed file (tests point E2E_ENV_DEFAULTS elsewhere)."""
    _load_env_defaults.cache_clear()
