"""
Productivity filters for loop candidates.

A repeated operation or sequence is not automatically a problem: progress
tracking, systematic searching, coordinated multi-file edits and repeated
reads around edits are all normal development. These checks decide when a
loop candidate is suppressed before it is reported.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Sequence

from .models import ToolOperation, file_path_of, pattern_of
from .signals import (
    MUTATION_TOOLS,
    PROGRESS_TRACKING_TOOLS,
    READ_TOOLS,
    SEARCH_ONLY_TOOLS,
    SHELL_TOOL,
    base_name,
    error_rate,
    filename_from_output,
    infer_semantic_action,
    parent_dir,
    shows_session_progress,
)

API_NAME_MARKERS = ("routes", "api", "controller", "service", "model")
COMPONENT_NAME_MARKERS = ("component", "page", "view", "layout")


def _diversity(values: Sequence[str]) -> float:
    return len(set(values)) / len(values) if values else 0.0


def has_search_diversity(loop_ops: Sequence[ToolOperation], ratio: float) -> bool:
    outputs = [(op.output or "").strip() or "no-output" for op in loop_ops]
    if _diversity(outputs) >= ratio:
        return True
    patterns = [pattern_of(op) or "no-pattern" for op in loop_ops]
    return _diversity(patterns) >= ratio


def has_edit_diversity(loop_ops: Sequence[ToolOperation]) -> bool:
    """Consecutive edits that touch different files or do different things."""
    for previous, current in zip(loop_ops, loop_ops[1:]):
        prev_file = filename_from_output(previous.output)
        curr_file = filename_from_output(current.output)
        if prev_file and curr_file and prev_file != curr_file:
            return True
        prev_action = infer_semantic_action(previous.output)
        curr_action = infer_semantic_action(current.output)
        if prev_action and curr_action and prev_action != curr_action:
            return True
    return False


def in_leading_fraction(start: int, end: int, total: int, fraction: float) -> bool:
    return (start + end) / 2 < total * fraction


def is_productive_simple_loop(
    name: str,
    start: int,
    end: int,
    count: int,
    operations: Sequence[ToolOperation],
    cfg: Mapping[str, Any],
) -> bool:
    """Return True when a run of identical operations looks like normal work."""
    loop_ops = operations[start:end + 1]
    progress = shows_session_progress(operations)

    if name in PROGRESS_TRACKING_TOOLS:
        return True

    if name in SEARCH_ONLY_TOOLS and has_search_diversity(loop_ops, cfg["diversity_ratio"]):
        return True

    if name in MUTATION_TOOLS:
        if has_edit_diversity(loop_ops):
            return True
        if progress and all(op.is_success for op in loop_ops):
            return True

    if name in READ_TOOLS:
        window = cfg["read_context_window"]
        context = operations[max(0, start - window):end + window + 1]
        if any(op.name in MUTATION_TOOLS for op in context):
            return True
        if progress and count < cfg["read_progress_max_count"]:
            return True

    if count <= cfg["short_loop_max_count"] and progress:
        return True

    if name == SHELL_TOOL:
        if error_rate(loop_ops) >= cfg["bash_error_ratio"]:
            return False
        if progress:
            return True

    # Early repetition (exploration) and the default share one tolerance.
    return count < cfg["max_tolerated_count"]


def _read_paths(sequence: Sequence[ToolOperation]) -> List[str]:
    return [path for path in (file_path_of(op) for op in sequence if op.name in READ_TOOLS) if path]


def are_related_components(name1: str, name2: str) -> bool:
    base1 = name1.rsplit(".", 1)[0].lower() if "." in name1 else name1.lower()
    base2 = name2.rsplit(".", 1)[0].lower() if "." in name2 else name2.lower()
    for markers in (API_NAME_MARKERS, COMPONENT_NAME_MARKERS):
        if any(marker in base1 and marker in base2 for marker in markers):
            return True
    return False


def is_systematic_exploration(sequence: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> bool:
    reads = [op for op in sequence if op.name in READ_TOOLS]
    if len(reads) < 2:
        return False
    paths = _read_paths(sequence)
    if len(paths) < 2:
        return False
    if len({parent_dir(path) for path in paths}) <= cfg["max_exploration_dirs"]:
        return True
    names = [base_name(path) for path in paths]
    return any(
        other != name and are_related_components(name, other)
        for name in names
        for other in names
    )


def is_related_file_exploration(sequence: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> bool:
    """Cross-referencing a small set of files within one iteration."""
    paths = _read_paths(sequence)
    unique = len(set(paths))
    return (
        cfg["related_files_min"] <= unique <= cfg["related_files_max"]
        and len(paths) >= cfg["related_reads_min"]
    )


def has_circular_failure(loop_ops: Sequence[ToolOperation], count: int, cfg: Mapping[str, Any]) -> bool:
    rate = error_rate(loop_ops)
    return (
        (rate > cfg["circular_error_rate"] and count >= cfg["circular_min_count"])
        or (rate > cfg["severe_error_rate"] and count >= cfg["severe_min_count"])
    )


def is_productive_sequence(
    start: int,
    length: int,
    count: int,
    operations: Sequence[ToolOperation],
    cfg: Mapping[str, Any],
) -> bool:
    """Return True when a repeated multi-op sequence looks like normal work."""
    sequence = operations[start:start + length]
    loop_ops = operations[start:start + length * count]

    if any(op.name in PROGRESS_TRACKING_TOOLS for op in sequence):
        return True
    if is_systematic_exploration(sequence, cfg):
        return True
    if is_related_file_exploration(sequence, cfg):
        return True
    if (
        length <= cfg["short_sequence_length"]
        and count <= cfg["short_sequence_max_count"]
        and shows_session_progress(operations, extra_commands=("npm test",))
    ):
        return True
    return not has_circular_failure(loop_ops, count, cfg)
