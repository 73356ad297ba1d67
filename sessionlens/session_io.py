"""
Load already-normalized sessions from disk.

Accepted shapes:
- .json   one session object, a list of them, or {"sessions": [...]}
- .jsonl  one session object per line
- .yaml / .yml  same shapes as .json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Union

import yaml

from .diagnostics import log_debug
from .pattern_detection.models import Session

YAML_SUFFIXES = {".yaml", ".yml"}
JSONL_SUFFIXES = {".jsonl", ".ndjson"}


def _as_entries(data: Any, source: Path) -> List[Any]:
    if isinstance(data, dict) and isinstance(data.get("sessions"), list):
        return list(data["sessions"])
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return data
    raise ValueError(f"{source}: expected a session object or a list of sessions")


def _read_jsonl(text: str, source: Path) -> List[Any]:
    entries = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise ValueError(f"{source}:{lineno}: invalid JSON ({exc.msg})") from exc
    return entries


def _read_entries(path: Path) -> List[Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML ({exc})") from exc
        if data is None:
            return []
        return _as_entries(data, path)
    if suffix in JSONL_SUFFIXES:
        return _read_jsonl(text, path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # A .json file holding one object per line is common in exported logs.
        return _read_jsonl(text, path)
    return _as_entries(data, path)


def sessions_from_entries(entries: Iterable[Any], source: str = "") -> List[Session]:
    sessions: List[Session] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            log_debug("session_io", f"{source}: skipping non-object entry at {position}")
            continue
        sessions.append(Session.from_dict(entry))
    return sessions


def load_sessions(path: Union[str, Path]) -> List[Session]:
    """Read sessions from a file. Raises FileNotFoundError or ValueError."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"session file not found: {path}")
    return sessions_from_entries(_read_entries(path), str(path))
