"""
Detector threshold resolver with deterministic precedence.

Precedence per key:
1) schema default (sessionlens/tuneables_schema.py)
2) versioned baseline (config/tuneables.json)
3) runtime override (~/.sessionlens/tuneables.json)
4) explicit env override mapping (opt-in per key)
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

DEFAULT_BASELINE_PATH = Path(__file__).resolve().parent.parent / "config" / "tuneables.json"
RUNTIME_DIR_NAME = ".sessionlens"

ParserFn = Callable[[str], Any]


def default_runtime_path() -> Path:
    """Runtime override file, resolved against the current home directory."""
    return Path.home() / RUNTIME_DIR_NAME / "tuneables.json"


@dataclass(frozen=True)
class EnvOverride:
    env_name: str
    parser: ParserFn


@dataclass
class ResolvedSection:
    data: Dict[str, Any]
    sources: Dict[str, str]
    warnings: List[str] = field(default_factory=list)


def _load_layer(path: Path, section_name: str, warnings: List[str]) -> Dict[str, Any]:
    """One section of a tuneables file; a missing or broken file is an empty layer."""
    if not path.exists():
        return {}
    try:
        document = json.loads(path.read_text(encoding="utf-8-sig"))
    except (json.JSONDecodeError, OSError) as exc:
        warnings.append(f"unreadable_config:{path.name}:{type(exc).__name__}")
        return {}
    if not isinstance(document, dict):
        return {}
    values = document.get(section_name)
    return dict(values) if isinstance(values, dict) else {}


def _clamped(cast: Callable[[str], Any], lo: Any, hi: Any) -> ParserFn:
    def parse(raw: str) -> Any:
        value = cast(raw)
        if lo is not None and value < lo:
            value = cast(lo)
        if hi is not None and value > hi:
            value = cast(hi)
        return value

    return parse


def env_int(name: str, *, lo: Optional[int] = None, hi: Optional[int] = None) -> EnvOverride:
    """Integer env override, clamped to [lo, hi] when bounds are given."""
    return EnvOverride(name, _clamped(int, lo, hi))


def env_float(name: str, *, lo: Optional[float] = None, hi: Optional[float] = None) -> EnvOverride:
    """Float env override, clamped to [lo, hi] when bounds are given."""
    return EnvOverride(name, _clamped(float, lo, hi))


def resolve_section(
    section_name: str,
    *,
    baseline_path: Optional[Path] = None,
    runtime_path: Optional[Path] = None,
    env_overrides: Optional[Dict[str, EnvOverride]] = None,
    include_schema_defaults: bool = True,
) -> ResolvedSection:
    """Merge one detector section across every layer, recording where each key came from."""
    warnings: List[str] = []
    layers: List[Tuple[str, Dict[str, Any]]] = []
    if include_schema_defaults:
        from .tuneables_schema import get_section_defaults

        layers.append(("schema", get_section_defaults(section_name)))
    layers.append(("baseline", _load_layer(baseline_path or DEFAULT_BASELINE_PATH, section_name, warnings)))
    layers.append(("runtime", _load_layer(runtime_path or default_runtime_path(), section_name, warnings)))

    resolved = ResolvedSection(data={}, sources={}, warnings=warnings)
    for source, values in layers:
        for key, value in values.items():
            resolved.data[key] = deepcopy(value)
            resolved.sources[key] = source

    for key, override in (env_overrides or {}).items():
        raw = os.environ.get(override.env_name, "").strip()
        if not raw:
            continue
        try:
            resolved.data[key] = override.parser(raw)
        except ValueError:
            warnings.append(f"invalid_env_override:{override.env_name}")
            continue
        resolved.sources[key] = f"env:{override.env_name}"
    return resolved
