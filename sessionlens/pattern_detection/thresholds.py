"""Resolved detector thresholds, validated against the schema and cached."""

from __future__ import annotations

import threading
from typing import Any, Dict

from ..config_authority import EnvOverride, env_float, env_int, resolve_section
from ..diagnostics import log_debug
from ..tuneables_schema import SCHEMA, validate_section

ENV_OVERRIDES: Dict[str, Dict[str, EnvOverride]] = {
    "long_sessions": {
        "threshold_seconds": env_float("SESSIONLENS_LONG_SESSION_SECONDS", lo=1.0),
    },
    "advanced_loops": {
        "max_sequence_length": env_int("SESSIONLENS_MAX_LOOP_LENGTH", lo=2),
    },
    "struggle_trend": {
        "chunk_size": env_int("SESSIONLENS_TREND_CHUNK_SIZE", lo=2),
    },
    "analysis": {
        "max_workers": env_int("SESSIONLENS_WORKERS", lo=1, hi=64),
    },
}

_cache: Dict[str, Dict[str, Any]] = {}
_lock = threading.Lock()


def _load(section: str) -> Dict[str, Any]:
    resolved = resolve_section(section, env_overrides=ENV_OVERRIDES.get(section))
    for warning in resolved.warnings:
        log_debug("thresholds", warning)
    checked = validate_section(section, resolved.data)
    for warning in checked.warnings:
        log_debug("thresholds", warning)
    return checked.data[section]


def get_section(section: str) -> Dict[str, Any]:
    """Return a copy of the resolved values for one tuneables section."""
    if section not in SCHEMA:
        raise KeyError(f"unknown tuneables section: {section}")
    with _lock:
        values = _cache.get(section)
        if values is None:
            values = _load(section)
            _cache[section] = values
    return dict(values)


def reload_thresholds() -> None:
    """Drop cached sections so the next lookup re-reads config and env."""
    with _lock:
        _cache.clear()
