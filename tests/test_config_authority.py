"""Tests for tuneables precedence, env overrides and schema validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from sessionlens.config_authority import env_float, env_int, resolve_section
from sessionlens.pattern_detection.thresholds import get_section, reload_thresholds
from sessionlens.tuneables_schema import (
    SCHEMA,
    generate_reference_doc,
    get_section_defaults,
    validate_section,
    validate_tuneables,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_tuneables(tmp_path: Path, sections: Dict[str, Any]) -> Path:
    """Write a minimal tuneables.json and return its path."""
    p = tmp_path / "tuneables.json"
    p.write_text(json.dumps(sections), encoding="utf-8")
    return p


def _make_baseline(tmp_path: Path, sections: Dict[str, Any]) -> Path:
    """Write a baseline config and return its path."""
    p = tmp_path / "baseline.json"
    p.write_text(json.dumps(sections), encoding="utf-8")
    return p


def _make_runtime(tmp_path: Path, sections: Dict[str, Any]) -> Path:
    """Write the runtime override file under the (patched) home directory."""
    runtime_dir = tmp_path / ".sessionlens"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    p = runtime_dir / "tuneables.json"
    p.write_text(json.dumps(sections), encoding="utf-8")
    return p


# ---------------------------------------------------------------------------
# resolve_section
# ---------------------------------------------------------------------------

class TestResolveSection:

    def test_schema_defaults_when_no_files(self, tmp_path):
        resolved = resolve_section(
            "long_sessions",
            baseline_path=tmp_path / "missing.json",
            runtime_path=tmp_path / "missing-runtime.json",
        )
        assert resolved.data["threshold_seconds"] == 600.0
        assert resolved.sources["threshold_seconds"] == "schema"
        assert resolved.warnings == []

    def test_precedence_schema_baseline_runtime_env(self, tmp_path, monkeypatch):
        baseline = _make_baseline(tmp_path, {"long_sessions": {"threshold_seconds": 900, "recent_window": 20}})
        runtime = _make_tuneables(tmp_path, {"long_sessions": {"threshold_seconds": 1200}})
        monkeypatch.setenv("SESSIONLENS_LONG_SESSION_SECONDS", "1800")
        resolved = resolve_section(
            "long_sessions",
            baseline_path=baseline,
            runtime_path=runtime,
            env_overrides={"threshold_seconds": env_float("SESSIONLENS_LONG_SESSION_SECONDS", lo=1.0)},
        )
        assert resolved.data["threshold_seconds"] == 1800.0
        assert resolved.sources["threshold_seconds"] == "env:SESSIONLENS_LONG_SESSION_SECONDS"
        assert resolved.data["recent_window"] == 20
        assert resolved.sources["recent_window"] == "baseline"
        assert resolved.sources["high_error_rate"] == "schema"

    def test_runtime_beats_baseline(self, tmp_path):
        baseline = _make_baseline(tmp_path, {"simple_loops": {"max_tolerated_count": 6}})
        runtime = _make_tuneables(tmp_path, {"simple_loops": {"max_tolerated_count": 8}})
        resolved = resolve_section("simple_loops", baseline_path=baseline, runtime_path=runtime)
        assert resolved.data["max_tolerated_count"] == 8
        assert resolved.sources["max_tolerated_count"] == "runtime"

    def test_unreadable_runtime_is_a_warning(self, tmp_path):
        runtime = tmp_path / "broken.json"
        runtime.write_text("{not json", encoding="utf-8")
        resolved = resolve_section("stagnation", baseline_path=tmp_path / "none.json", runtime_path=runtime)
        assert resolved.data == get_section_defaults("stagnation")
        assert resolved.warnings == ["unreadable_config:broken.json:JSONDecodeError"]

    def test_invalid_env_value_is_a_warning(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SESSIONLENS_MAX_LOOP_LENGTH", "lots")
        resolved = resolve_section(
            "advanced_loops",
            baseline_path=tmp_path / "none.json",
            runtime_path=tmp_path / "none-runtime.json",
            env_overrides={"max_sequence_length": env_int("SESSIONLENS_MAX_LOOP_LENGTH", lo=2)},
        )
        assert resolved.data["max_sequence_length"] == 25
        assert resolved.warnings == ["invalid_env_override:SESSIONLENS_MAX_LOOP_LENGTH"]

    def test_env_int_clamps(self, monkeypatch):
        override = env_int("SESSIONLENS_WORKERS", lo=1, hi=64)
        assert override.parser("0") == 1
        assert override.parser("500") == 64


# ---------------------------------------------------------------------------
# Cached thresholds
# ---------------------------------------------------------------------------

class TestThresholds:

    def test_runtime_file_under_home(self, tmp_path):
        _make_runtime(tmp_path, {"context_switching": {"top_files": 5}})
        reload_thresholds()
        assert get_section("context_switching")["top_files"] == 5

    def test_values_are_cached_until_reload(self, tmp_path):
        assert get_section("context_switching")["top_files"] == 3
        _make_runtime(tmp_path, {"context_switching": {"top_files": 5}})
        assert get_section("context_switching")["top_files"] == 3
        reload_thresholds()
        assert get_section("context_switching")["top_files"] == 5

    def test_out_of_range_values_are_clamped(self, tmp_path):
        _make_runtime(tmp_path, {"stagnation": {"min_operations": 0}})
        reload_thresholds()
        assert get_section("stagnation")["min_operations"] == 2

    def test_returns_a_copy(self):
        get_section("simple_loops")["min_operations"] = 99
        assert get_section("simple_loops")["min_operations"] == 2

    def test_unknown_section(self):
        with pytest.raises(KeyError):
            get_section("nope")


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------

class TestSchema:

    def test_missing_sections_filled_with_defaults(self):
        result = validate_tuneables({})
        assert set(result.data) == set(SCHEMA)
        assert "section:phases" in result.defaults_applied

    def test_type_coercion_and_clamping(self):
        result = validate_section("long_sessions", {"threshold_seconds": "900", "recent_window": 0})
        section = result.data["long_sessions"]
        assert section["threshold_seconds"] == 900.0
        assert section["recent_window"] == 1
        assert "long_sessions.recent_window" in result.clamped

    def test_unknown_keys_are_kept_with_warning(self):
        result = validate_section("phases", {"min_windw": 4, "_doc": "notes"})
        assert result.data["phases"]["min_windw"] == 4
        assert result.unknown_keys == ["phases.min_windw"]

    def test_list_type_is_enforced(self):
        result = validate_section("redundant_sequences", {"git_workflow_commands": "git status"})
        assert result.data["redundant_sequences"]["git_workflow_commands"] == get_section_defaults(
            "redundant_sequences")["git_workflow_commands"]
        assert not result.ok

    def test_reference_doc_lists_every_section(self):
        doc = generate_reference_doc()
        for section in SCHEMA:
            assert f"## `{section}`" in doc
