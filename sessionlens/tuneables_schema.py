"""
Schema and validator for detector tuneables.

Every detector threshold is declared here with its type, default, bounds and
description. `config/tuneables.json` must mirror these defaults.

    result = validate_tuneables(data)
    for w in result.warnings:
        print(f"[WARN] {w}")
"""

from __future__ import annotations

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# --------------- Schema Primitives ---------------

TuneableSpec = namedtuple("TuneableSpec", [
    "type",          # "int", "float", "str", "list"
    "default",       # Default value
    "min_val",       # Minimum (None if unbounded or non-numeric)
    "max_val",       # Maximum (None if unbounded or non-numeric)
    "description",   # Human-readable description
], defaults=[None, None, ""])


@dataclass
class ValidationResult:
    """Result of validating a tuneables dict against the schema."""
    data: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    clamped: List[str] = field(default_factory=list)
    defaults_applied: List[str] = field(default_factory=list)
    unknown_keys: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.warnings) == 0


GIT_WORKFLOW_COMMANDS = [
    "git status",
    "git diff",
    "git diff --cached",
    "git diff --staged",
    "git log",
    "git add",
    "git commit",
    "git push",
]

# --------------- Full Schema Definition ---------------
# Every section and key from config/tuneables.json is defined here.

SCHEMA: Dict[str, Dict[str, TuneableSpec]] = {
    # ---- phases: sliding-window phase classifier ----
    "phases": {
        "min_window": TuneableSpec("int", 3, 1, 50, "Smallest classification window"),
        "max_window": TuneableSpec("int", 8, 1, 200, "Largest classification window"),
        "window_divisor": TuneableSpec("int", 4, 1, 50, "Window = ceil(ops / divisor) before clamping"),
        "exploration_weight": TuneableSpec("float", 1.2, 0.0, 5.0, "Score multiplier for exploration signals"),
        "implementation_weight": TuneableSpec("float", 1.1, 0.0, 5.0, "Score multiplier for implementation signals"),
        "testing_weight": TuneableSpec("float", 1.0, 0.0, 5.0, "Score multiplier for testing signals"),
        "exploration_boost": TuneableSpec("float", 0.2, 0.0, 1.0, "Confidence boost for pure exploration windows"),
        "implementation_boost": TuneableSpec("float", 0.15, 0.0, 1.0, "Confidence boost for clear implementation windows"),
        "testing_boost": TuneableSpec("float", 0.1, 0.0, 1.0, "Confidence boost for short test windows"),
        "mixed_signal_penalty": TuneableSpec("float", 0.7, 0.0, 1.0, "Confidence multiplier when all categories are present"),
        "min_confidence": TuneableSpec("float", 0.3, 0.0, 1.0, "Below this a window becomes mixed/unknown"),
        "min_score": TuneableSpec("float", 0.2, 0.0, 1.0, "Winning score below this makes a window mixed/unknown"),
        "merge_gap": TuneableSpec("int", 2, 0, 50, "Max gap between same-type phases that still merge"),
        "high_confidence": TuneableSpec("float", 0.7, 0.0, 1.0, "Confidence level 'high' threshold"),
        "medium_confidence": TuneableSpec("float", 0.4, 0.0, 1.0, "Confidence level 'medium' threshold"),
    },

    # ---- simple_loops: adjacent identical operations ----
    "simple_loops": {
        "min_operations": TuneableSpec("int", 2, 2, 1000, "Minimum session size"),
        "diversity_ratio": TuneableSpec("float", 0.7, 0.0, 1.0, "Search output/pattern diversity that marks exploration"),
        "bash_error_ratio": TuneableSpec("float", 0.7, 0.0, 1.0, "Shell loop error share that makes it genuine"),
        "read_context_window": TuneableSpec("int", 5, 0, 100, "Ops around a read loop searched for edits"),
        "read_progress_max_count": TuneableSpec("int", 5, 2, 100, "Read loops below this are tolerated in progressing sessions"),
        "short_loop_max_count": TuneableSpec("int", 3, 2, 100, "Loops up to this are tolerated in progressing sessions"),
        "exploration_fraction": TuneableSpec("float", 0.3, 0.0, 1.0, "Leading share of the session treated as exploration"),
        "max_tolerated_count": TuneableSpec("int", 4, 2, 100, "Loops below this repeat count are tolerated"),
    },

    # ---- advanced_loops: repeated multi-op sequences ----
    "advanced_loops": {
        "min_operations": TuneableSpec("int", 4, 4, 1000, "Minimum session size"),
        "max_sequence_length": TuneableSpec("int", 25, 2, 1000, "Longest sequence length scanned"),
        "short_sequence_length": TuneableSpec("int", 3, 2, 100, "Sequences up to this length count as short"),
        "short_sequence_max_count": TuneableSpec("int", 2, 2, 100, "Short sequences repeated at most this often are tolerated"),
        "circular_error_rate": TuneableSpec("float", 0.3, 0.0, 1.0, "Error rate marking circular failure"),
        "circular_min_count": TuneableSpec("int", 3, 2, 100, "Repeats needed with circular_error_rate"),
        "severe_error_rate": TuneableSpec("float", 0.5, 0.0, 1.0, "Error rate marking severe circular failure"),
        "severe_min_count": TuneableSpec("int", 2, 2, 100, "Repeats needed with severe_error_rate"),
        "max_exploration_dirs": TuneableSpec("int", 2, 1, 50, "Read sequences within this many dirs are systematic"),
        "related_files_min": TuneableSpec("int", 2, 1, 50, "Min distinct files for cross-referencing"),
        "related_files_max": TuneableSpec("int", 4, 1, 50, "Max distinct files for cross-referencing"),
        "related_reads_min": TuneableSpec("int", 4, 1, 100, "Min reads for cross-referencing"),
    },

    # ---- plan_editing_loops: repeated edits to a plan file ----
    "plan_editing_loops": {
        "min_operations": TuneableSpec("int", 2, 2, 1000, "Minimum session size"),
        "path_marker": TuneableSpec("str", "plan", None, None, "Substring identifying plan files"),
    },

    # ---- stagnation: adjacent identical operations ----
    "stagnation": {
        "min_operations": TuneableSpec("int", 2, 2, 1000, "Minimum session size"),
        "exploration_fraction": TuneableSpec("float", 0.3, 0.0, 1.0, "Leading share where repeated reads are tolerated"),
        "nearby_window": TuneableSpec("int", 3, 0, 50, "Ops on each side checked for methodical work"),
        "progress_leniency_fraction": TuneableSpec("float", 0.8, 0.0, 1.0, "Leading share tolerated in progressing sessions"),
    },

    # ---- redundant_sequences: re-reads and duplicate shell commands ----
    "redundant_sequences": {
        "min_operations": TuneableSpec("int", 3, 3, 1000, "Minimum session size"),
        "exploration_confidence": TuneableSpec("float", 0.6, 0.0, 1.0, "Exploration phase confidence that suppresses"),
        "git_workflow_commands": TuneableSpec("list", list(GIT_WORKFLOW_COMMANDS), None, None, "Git commands allowed to repeat"),
    },

    # ---- reading_spirals ----
    "reading_spirals": {
        "min_operations": TuneableSpec("int", 5, 1, 1000, "Minimum session size"),
        "min_reads": TuneableSpec("int", 10, 1, 1000, "Reads must exceed this"),
        "max_actions": TuneableSpec("int", 3, 0, 1000, "Fewer actions than this flags the spiral"),
        "max_ratio": TuneableSpec("float", 5.0, 0.0, 100.0, "Adjusted read/action ratio that flags the spiral"),
        "user_directed_reads": TuneableSpec("int", 5, 0, 1000, "User-directed reads above this inflate the ratio"),
        "user_directed_multiplier": TuneableSpec("float", 1.5, 1.0, 10.0, "Ratio multiplier for user-directed reading"),
        "high_ratio": TuneableSpec("float", 10.0, 0.0, 1000.0, "Adjusted ratio for high confidence"),
    },

    # ---- shotgun_debugging ----
    "shotgun_debugging": {
        "min_operations": TuneableSpec("int", 15, 1, 1000, "Minimum session size"),
        "min_autonomous": TuneableSpec("int", 10, 1, 1000, "Minimum autonomous operations"),
        "min_tool_variety": TuneableSpec("int", 6, 1, 100, "Distinct tools needed"),
        "min_total_tools": TuneableSpec("int", 15, 1, 1000, "Autonomous operations needed"),
        "velocity_threshold": TuneableSpec("float", 3.0, 0.0, 100.0, "Tools per minute that flags"),
        "diversity_threshold": TuneableSpec("float", 0.4, 0.0, 1.0, "Tool diversity that flags short sessions"),
        "max_duration_minutes": TuneableSpec("float", 30.0, 0.0, 1440.0, "Short-session cutoff for the diversity rule"),
        "high_velocity": TuneableSpec("float", 5.0, 0.0, 100.0, "Velocity for high confidence"),
    },

    # ---- context_switching ----
    "context_switching": {
        "min_operations": TuneableSpec("int", 10, 1, 1000, "Minimum session size"),
        "min_file_operations": TuneableSpec("int", 8, 1, 1000, "Minimum file operations"),
        "min_unique_files": TuneableSpec("int", 5, 1, 1000, "Unique files must exceed this"),
        "max_ops_per_file": TuneableSpec("float", 3.0, 0.0, 100.0, "Average ops per file must stay below this"),
        "switch_rate": TuneableSpec("float", 0.4, 0.0, 1.0, "Switch rate must exceed this"),
        "high_switch_rate": TuneableSpec("float", 0.6, 0.0, 1.0, "Switch rate for high confidence"),
        "top_files": TuneableSpec("int", 3, 0, 50, "Most-touched files listed on the record"),
    },

    # ---- no_progress ----
    "no_progress": {
        "min_operations": TuneableSpec("int", 10, 1, 1000, "Minimum session size"),
    },

    # ---- long_sessions ----
    "long_sessions": {
        "threshold_seconds": TuneableSpec("float", 600.0, 1.0, 86400.0, "Sessions must last longer than this"),
        "high_tool_count": TuneableSpec("int", 100, 1, 100000, "Tool count that marks complex work"),
        "productive_error_rate": TuneableSpec("float", 0.1, 0.0, 1.0, "Error rate under which high tool counts are productive"),
        "systematic_error_rate": TuneableSpec("float", 0.3, 0.0, 1.0, "Error rate under which systematic sessions are productive"),
        "fast_tools_per_minute": TuneableSpec("float", 5.0, 0.0, 100.0, "Pace that marks fast sessions"),
        "fast_error_rate": TuneableSpec("float", 0.2, 0.0, 1.0, "Error rate under which fast sessions are productive"),
        "problematic_error_rate": TuneableSpec("float", 0.4, 0.0, 1.0, "Error rate that marks struggle"),
        "repetitive_error_rate": TuneableSpec("float", 0.2, 0.0, 1.0, "Error rate that combines with repetitive errors"),
        "repetitive_error_count": TuneableSpec("int", 3, 2, 100, "Failures of one command that count as repetitive"),
        "very_long_minutes": TuneableSpec("float", 60.0, 1.0, 1440.0, "Duration that marks very long sessions"),
        "very_long_error_rate": TuneableSpec("float", 0.25, 0.0, 1.0, "Error rate that flags very long sessions"),
        "recent_window": TuneableSpec("int", 10, 1, 1000, "Trailing ops searched for completion signals"),
        "high_error_rate": TuneableSpec("float", 0.6, 0.0, 1.0, "Error rate for high confidence"),
    },

    # ---- error_patterns ----
    "error_patterns": {
        "min_operations": TuneableSpec("int", 2, 2, 1000, "Minimum session size"),
        "string_replacement_min": TuneableSpec("int", 3, 1, 100, "String replacement failures needed"),
        "interruption_min": TuneableSpec("int", 2, 1, 100, "User interruptions needed"),
        "timeout_min": TuneableSpec("int", 1, 1, 100, "Timeouts needed"),
        "git_error_min": TuneableSpec("int", 1, 1, 100, "Git errors needed"),
        "chain_gap": TuneableSpec("int", 5, 1, 100, "Max index gap between chained errors"),
        "chain_min_errors": TuneableSpec("int", 3, 2, 100, "Errors needed for a cross-tool chain"),
        "chain_min_tools": TuneableSpec("int", 2, 2, 100, "Distinct tools needed for a cross-tool chain"),
        "density_error_rate": TuneableSpec("float", 0.25, 0.0, 1.0, "Session error rate that flags density"),
        "density_min_errors": TuneableSpec("int", 5, 1, 1000, "Errors needed for density"),
        "exploration_failure_rate": TuneableSpec("float", 0.4, 0.0, 1.0, "Exploration failure rate above which read errors count"),
        "chain_high_errors": TuneableSpec("int", 5, 2, 100, "Chained errors for high confidence"),
        "output_excerpt": TuneableSpec("int", 100, 10, 10000, "Characters of output kept as evidence"),
    },

    # ---- bash_errors ----
    "bash_errors": {
        "environment_min": TuneableSpec("int", 2, 1, 100, "Environment errors needed"),
        "workflow_min": TuneableSpec("int", 1, 1, 100, "Workflow errors needed"),
        "high_environment_count": TuneableSpec("int", 3, 1, 100, "Environment errors above this are high confidence"),
    },

    # ---- struggle_trend ----
    "struggle_trend": {
        "min_operations": TuneableSpec("int", 100, 2, 100000, "Minimum session size"),
        "chunk_size": TuneableSpec("int", 50, 2, 10000, "Operations per chunk"),
        "min_chunks": TuneableSpec("int", 3, 2, 1000, "Chunks needed for a trend"),
        "variety_limit": TuneableSpec("int", 8, 1, 100, "Distinct tools above this add the variety penalty"),
        "variety_penalty": TuneableSpec("float", 0.5, 0.0, 10.0, "Penalty for high tool variety"),
        "error_weight": TuneableSpec("float", 2.0, 0.0, 10.0, "Error rate weight"),
        "switch_weight": TuneableSpec("float", 1.0, 0.0, 10.0, "Switch rate weight"),
        "degrading_factor": TuneableSpec("float", 1.3, 1.0, 10.0, "Last/first ratio that marks degrading"),
        "improving_factor": TuneableSpec("float", 0.7, 0.0, 1.0, "Last/first ratio that marks improving"),
    },

    # ---- problem_solving ----
    "problem_solving": {
        "min_operations": TuneableSpec("int", 4, 1, 1000, "Minimum session size"),
        "success_threshold": TuneableSpec("float", 0.6, 0.0, 1.0, "Weighted score needed"),
        "systematic_threshold": TuneableSpec("float", 0.6, 0.0, 1.0, "Systematic quality that counts as resolution"),
        "high_confidence": TuneableSpec("float", 0.8, 0.0, 1.0, "Score for high confidence"),
        "cycle_weight": TuneableSpec("float", 0.4, 0.0, 1.0, "Weight of resolved error-fix cycles"),
        "systematic_weight": TuneableSpec("float", 0.3, 0.0, 1.0, "Weight of systematic approach"),
        "efficiency_weight": TuneableSpec("float", 0.3, 0.0, 1.0, "Weight of resolution efficiency"),
        "error_ratio_scale": TuneableSpec("float", 1.67, 0.0, 10.0, "Multiplier from session error rate to error_to_solution_ratio"),
    },

    # ---- collaboration ----
    "collaboration": {
        "min_operations": TuneableSpec("int", 3, 1, 1000, "Minimum session size"),
        "min_messages": TuneableSpec("int", 3, 1, 1000, "Conversation messages needed"),
        "effectiveness_threshold": TuneableSpec("float", 0.7, 0.0, 1.0, "Weighted score needed"),
        "high_confidence": TuneableSpec("float", 0.8, 0.0, 1.0, "Score for high confidence"),
        "efficiency_weight": TuneableSpec("float", 0.3, 0.0, 1.0, "Weight of conversation efficiency"),
        "implementation_weight": TuneableSpec("float", 0.4, 0.0, 1.0, "Weight of implementation success"),
        "clarity_weight": TuneableSpec("float", 0.2, 0.0, 1.0, "Weight of solution clarity"),
        "problem_solving_weight": TuneableSpec("float", 0.1, 0.0, 1.0, "Weight of problem complexity"),
    },

    # ---- productive_sessions ----
    "productive_sessions": {
        "min_operations": TuneableSpec("int", 4, 1, 1000, "Minimum session size"),
        "min_duration_seconds": TuneableSpec("float", 300.0, 0.0, 86400.0, "Minimum session duration"),
        "high_confidence": TuneableSpec("float", 0.8, 0.0, 1.0, "Score for high confidence"),
        "completion_window": TuneableSpec("int", 10, 1, 1000, "Trailing ops searched for completion signals"),
        "ultra_volume_tools": TuneableSpec("int", 400, 1, 100000, "Tool count above which near-error-free work is high productivity"),
        "ultra_volume_error_rate": TuneableSpec("float", 0.02, 0.0, 1.0, "Error rate under which ultra-volume work counts"),
        "clean_min_tools": TuneableSpec("int", 100, 1, 100000, "Tool count for a clean implementation"),
        "clean_error_rate": TuneableSpec("float", 0.02, 0.0, 1.0, "Error rate under which high-volume work is clean"),
        "clean_min_edits": TuneableSpec("int", 20, 1, 100000, "Edit and Write count for a clean implementation"),
        "clean_edit_error_rate": TuneableSpec("float", 0.05, 0.0, 1.0, "Error rate under which edit-heavy work is clean"),
        "resolution_min_error_rate": TuneableSpec("float", 0.1, 0.0, 1.0, "Error rate above which resolved errors mean effective problem solving"),
        "resolution_max_error_rate": TuneableSpec("float", 0.5, 0.0, 1.0, "Error rate below which resolved errors mean effective problem solving"),
        "completion_error_rate": TuneableSpec("float", 0.3, 0.0, 1.0, "Error rate under which completion signals count"),
        "high_volume_tools": TuneableSpec("int", 200, 1, 100000, "Tool count for high-volume work"),
        "high_volume_error_rate": TuneableSpec("float", 0.05, 0.0, 1.0, "Error rate under which high-volume work counts"),
        "planned_error_rate": TuneableSpec("float", 0.2, 0.0, 1.0, "Error rate under which planned sessions count"),
        "productive_score": TuneableSpec("float", 0.7, 0.0, 1.0, "Productivity score that classifies on its own"),
        "volume_tools": TuneableSpec("int", 100, 1, 100000, "Tool count that earns the volume bonus"),
        "accuracy_weight": TuneableSpec("float", 0.3, 0.0, 1.0, "Weight of (1 - error rate)"),
        "volume_bonus": TuneableSpec("float", 0.2, 0.0, 1.0, "Bonus above volume_tools"),
        "high_volume_bonus": TuneableSpec("float", 0.1, 0.0, 1.0, "Bonus above high_volume_tools"),
        "systematic_bonus": TuneableSpec("float", 0.15, 0.0, 1.0, "Bonus for systematic progression"),
        "planning_bonus": TuneableSpec("float", 0.1, 0.0, 1.0, "Bonus for planning indicators"),
        "completion_bonus": TuneableSpec("float", 0.15, 0.0, 1.0, "Bonus for completion signals"),
        "resolution_bonus": TuneableSpec("float", 0.1, 0.0, 1.0, "Bonus for resolved errors"),
        "clean_bonus": TuneableSpec("float", 0.2, 0.0, 1.0, "Bonus for a clean implementation"),
        "focused_bonus": TuneableSpec("float", 0.05, 0.0, 1.0, "Bonus for a focused session length"),
        "focused_min_minutes": TuneableSpec("float", 20.0, 0.0, 1440.0, "Focused session lower bound (exclusive)"),
        "focused_max_minutes": TuneableSpec("float", 120.0, 0.0, 1440.0, "Focused session upper bound (exclusive)"),
    },

    # ---- analysis: facade execution ----
    "analysis": {
        "max_workers": TuneableSpec("int", 4, 1, 64, "Worker threads for multi-session analysis"),
    },
}

SECTION_CONSUMERS: Dict[str, List[str]] = {
    "phases": ["sessionlens/pattern_detection/phases.py"],
    "simple_loops": ["sessionlens/pattern_detection/loops.py", "sessionlens/pattern_detection/productivity.py"],
    "advanced_loops": ["sessionlens/pattern_detection/loops.py", "sessionlens/pattern_detection/productivity.py"],
    "plan_editing_loops": ["sessionlens/pattern_detection/loops.py"],
    "stagnation": ["sessionlens/pattern_detection/stagnation.py"],
    "redundant_sequences": ["sessionlens/pattern_detection/redundancy.py"],
    "reading_spirals": ["sessionlens/pattern_detection/ratios.py"],
    "shotgun_debugging": ["sessionlens/pattern_detection/ratios.py"],
    "context_switching": ["sessionlens/pattern_detection/ratios.py"],
    "no_progress": ["sessionlens/pattern_detection/ratios.py"],
    "long_sessions": ["sessionlens/pattern_detection/long_sessions.py"],
    "error_patterns": ["sessionlens/pattern_detection/errors.py"],
    "bash_errors": ["sessionlens/pattern_detection/bash_errors.py"],
    "struggle_trend": ["sessionlens/pattern_detection/trend.py"],
    "problem_solving": ["sessionlens/pattern_detection/success.py"],
    "collaboration": ["sessionlens/pattern_detection/success.py"],
    "productive_sessions": ["sessionlens/pattern_detection/success.py"],
    "analysis": ["sessionlens/pattern_detection/registry.py"],
}


# --------------- Validation ---------------

_CASTS = {"int": int, "float": float}


def _default_of(spec: TuneableSpec) -> Any:
    return list(spec.default) if isinstance(spec.default, list) else spec.default


def _check_number(where: str, value: Any, spec: TuneableSpec) -> Tuple[Any, Optional[str], bool]:
    cast = _CASTS[spec.type]
    if isinstance(value, bool):
        return spec.default, f"{where}: expected {spec.type}, got bool, using default {spec.default}", False
    try:
        number = cast(value)
    except (ValueError, TypeError):
        return spec.default, f"{where}: cannot convert {value!r} to {spec.type}, using default {spec.default}", False
    if spec.min_val is not None and number < spec.min_val:
        return cast(spec.min_val), f"{where}: {number} below min {spec.min_val}, clamped", True
    if spec.max_val is not None and number > spec.max_val:
        return cast(spec.max_val), f"{where}: {number} above max {spec.max_val}, clamped", True
    return number, None, False


def _check_value(where: str, value: Any, spec: TuneableSpec) -> Tuple[Any, Optional[str], bool]:
    """Coerce one value. Returns (value, warning or None, clamped)."""
    if spec.type in _CASTS:
        return _check_number(where, value, spec)
    if spec.type == "str":
        return str(value).strip(), None, False
    if spec.type == "list":
        if isinstance(value, list):
            return list(value), None, False
        return _default_of(spec), f"{where}: expected list, got {type(value).__name__}, using default", False
    return value, None, False


def _check_section(
    section_name: str, raw: Dict[str, Any], section_spec: Dict[str, TuneableSpec], result: "ValidationResult",
) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, spec in section_spec.items():
        where = f"{section_name}.{key}"
        if key not in raw:
            cleaned[key] = _default_of(spec)
            result.defaults_applied.append(where)
            continue
        cleaned[key], warning, clamped = _check_value(where, raw[key], spec)
        if warning:
            result.warnings.append(warning)
        if clamped:
            result.clamped.append(where)

    # Unknown keys are kept so a typo never silently drops a value; "_doc" style notes are quiet.
    for key, value in raw.items():
        if key in section_spec:
            continue
        cleaned[key] = value
        if not key.startswith("_"):
            result.unknown_keys.append(f"{section_name}.{key}")
            result.warnings.append(f"{section_name}.{key}: unknown key (possible typo?)")
    return cleaned


def validate_tuneables(
    data: Dict[str, Any],
    *,
    schema: Optional[Dict[str, Dict[str, TuneableSpec]]] = None,
) -> ValidationResult:
    """Validate detector tuneables against the schema.

    Missing sections and keys get their defaults, numbers are clamped to
    their bounds, wrong types fall back to the default with a warning, and
    unknown sections or keys are preserved with a warning.
    """
    schema = schema or SCHEMA
    result = ValidationResult(data={})

    for section_name, section_spec in schema.items():
        raw = data.get(section_name)
        if raw is None:
            result.defaults_applied.append(f"section:{section_name}")
        elif not isinstance(raw, dict):
            result.warnings.append(f"{section_name}: expected dict, got {type(raw).__name__}")
        if not isinstance(raw, dict):
            result.data[section_name] = {k: _default_of(s) for k, s in section_spec.items()}
            continue
        result.data[section_name] = _check_section(section_name, raw, section_spec, result)

    for section_name, raw in data.items():
        if section_name in schema:
            continue
        result.data[section_name] = raw
        if section_name != "updated_at" and not section_name.startswith("_"):
            result.unknown_keys.append(f"section:{section_name}")
            result.warnings.append(f"section:{section_name}: unknown section (possible typo?)")
    return result


def validate_section(section_name: str, values: Dict[str, Any]) -> ValidationResult:
    """Validate a single resolved section; other sections are ignored."""
    spec = SCHEMA.get(section_name)
    if spec is None:
        return ValidationResult(data={section_name: dict(values)}, warnings=[f"section:{section_name}: unknown section"])
    return validate_tuneables({section_name: values}, schema={section_name: spec})


# --------------- Helpers ---------------

def get_section_defaults(section_name: str) -> Dict[str, Any]:
    """Return default values for a section."""
    return {key: _default_of(spec) for key, spec in SCHEMA.get(section_name, {}).items()}


def get_full_defaults() -> Dict[str, Any]:
    """Return a complete tuneables dict with all defaults."""
    return {section: get_section_defaults(section) for section in SCHEMA}


# --------------- Reference Doc ---------------

def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def generate_reference_doc() -> str:
    """Markdown table of every detector threshold, grouped by section."""
    total = sum(len(keys) for keys in SCHEMA.values())
    lines = [
        "# Detector Tuneables Reference",
        "",
        "Generated from `sessionlens/tuneables_schema.py`.",
        "",
        f"{len(SCHEMA)} sections, {total} keys. Baseline values live in `config/tuneables.json`; "
        "per-user overrides in `~/.sessionlens/tuneables.json`.",
        "",
    ]
    for section_name, section_spec in SCHEMA.items():
        consumers = ", ".join(f"`{c}`" for c in SECTION_CONSUMERS.get(section_name, [])) or "-"
        lines += [
            f"## `{section_name}`",
            "",
            f"Read by {consumers}",
            "",
            "| Key | Type | Default | Min | Max | Description |",
            "|-----|------|---------|-----|-----|-------------|",
        ]
        for key, spec in section_spec.items():
            lines.append(
                f"| `{key}` | {spec.type} | `{spec.default!r}` | {_cell(spec.min_val)} | {_cell(spec.max_val)} | {spec.description} |"
            )
        lines.append("")
    return "\n".join(lines)
