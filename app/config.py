"""
Configuration loader.

- Reads env vars (AUTOSPLIT_*), overridable per call (CLI flags, tests)
- Provides strongly-typed Settings
- Holds rotation, retention and compression knobs
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Any, Optional

from rotation.errors import ConfigError

DEFAULT_SOFT_LIMIT = 10 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    LOG_DIR: str                 # directory holding .current and archives
    SOFT_LIMIT: int              # bytes; size-based rotation trigger
    ROTATE_AFTER: Optional[int]  # seconds; None disables time-based rotation
    MAX_FILES: int               # 0 = unlimited
    MAX_SPACE: int               # bytes, 0 = unlimited
    COMPRESSION: str             # none | gzip

    # Ops
    LOG_LEVEL: str
    OPS_LOG_FILE: Optional[str]
    SECRET_KEY: str


def _pick(o: dict, key: str, env: str, default: Any = None) -> Any:
    if key in o and o[key] is not None:
        return o[key]
    return os.environ.get(env, default)


def _to_int(name: str, v: Any) -> int:
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {v!r}") from None
    if n < 0:
        raise ConfigError(f"{name} must be >= 0, got {n}")
    return n


def _to_interval(v: Any) -> Optional[int]:
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "-1", "off", "none", "never"}:
        return None
    if isinstance(v, int) and v == -1:
        return None
    return _to_int("ROTATE_AFTER", v)


def load_settings(override: dict | None = None) -> Settings:
    o = override or {}
    log_dir = _pick(o, "LOG_DIR", "AUTOSPLIT_DIR")
    if not log_dir:
        raise ConfigError("Directory not specified")
    return Settings(
        LOG_DIR=str(log_dir),
        SOFT_LIMIT=_to_int("SOFT_LIMIT", _pick(o, "SOFT_LIMIT", "AUTOSPLIT_SOFT_LIMIT", DEFAULT_SOFT_LIMIT)),
        ROTATE_AFTER=_to_interval(_pick(o, "ROTATE_AFTER", "AUTOSPLIT_ROTATE_AFTER")),
        MAX_FILES=_to_int("MAX_FILES", _pick(o, "MAX_FILES", "AUTOSPLIT_MAX_FILES", 0)),
        MAX_SPACE=_to_int("MAX_SPACE", _pick(o, "MAX_SPACE", "AUTOSPLIT_MAX_SPACE", 0)),
        COMPRESSION=str(_pick(o, "COMPRESSION", "AUTOSPLIT_COMPRESS", "none")),

        LOG_LEVEL=str(_pick(o, "LOG_LEVEL", "AUTOSPLIT_LOG_LEVEL", "INFO")).upper(),
        OPS_LOG_FILE=_pick(o, "OPS_LOG_FILE", "AUTOSPLIT_OPS_LOG") or None,
        SECRET_KEY=str(_pick(o, "SECRET_KEY", "SECRET_KEY", "change-me")),
    )
