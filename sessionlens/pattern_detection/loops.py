"""
Loop detectors.

- simple loops: the same tool called back to back with the same input
- advanced loops: a multi-operation sequence repeated back to back
- plan editing loops: consecutive edits to the same plan file

Candidates pass through the productivity filters before they are reported,
and reported spans within one detector never overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import ToolInput, ToolOperation, coerce_session, file_path_of
from .productivity import is_productive_sequence, is_productive_simple_loop
from .thresholds import get_section

log = logging.getLogger("sessionlens.loops")


@dataclass(frozen=True)
class SimpleLoop(PatternRecord):
    name: str
    input: Optional[ToolInput]
    count: int
    start_index: int
    end_index: int
    tool_operation_indices: Tuple[int, ...]


@dataclass(frozen=True)
class AdvancedLoop(PatternRecord):
    tool_sequence: Tuple[str, ...]
    count: int
    start_index: int
    end_index: int
    length: int


@dataclass(frozen=True)
class PlanEditingLoop(PatternRecord):
    file_path: str
    count: int
    start_index: int
    end_index: int
    operation_indices: Tuple[int, ...]


def _same_call(a: ToolOperation, b: ToolOperation) -> bool:
    return a.name == b.name and a.input == b.input


def detect_simple_loops(session: Any) -> List[SimpleLoop]:
    """Runs of the same tool called with deep-equal input."""
    session = coerce_session(session)
    cfg = get_section("simple_loops")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    runs: List[Tuple[int, int]] = []
    run_start = None
    for i in range(1, len(ops)):
        if _same_call(ops[i - 1], ops[i]):
            if run_start is None:
                run_start = i - 1
        elif run_start is not None:
            runs.append((run_start, i - 1))
            run_start = None
    if run_start is not None:
        runs.append((run_start, len(ops) - 1))

    loops: List[SimpleLoop] = []
    for start, end in runs:
        first = ops[start]
        count = end - start + 1
        if is_productive_simple_loop(first.name, start, end, count, ops, cfg):
            log.debug("simple loop %s x%d at %d suppressed as productive", first.name, count, start)
            continue
        loops.append(SimpleLoop(
            provenance=provenance(PatternType.SIMPLE_LOOP, session.session_id, ConfidenceLevel.HIGH),
            name=first.name,
            input=first.input,
            count=count,
            start_index=start,
            end_index=end,
            tool_operation_indices=tuple(range(start, end + 1)),
        ))
    return loops


def _keys(ops: Sequence[ToolOperation]) -> List[Tuple[str, Optional[ToolInput]]]:
    return [(op.name, op.input) for op in ops]


def _overlaps_any(start: int, end: int, spans: Sequence[Tuple[int, int]]) -> bool:
    return any(not (end < s or start > e) for s, e in spans)


def detect_advanced_loops(session: Any) -> List[AdvancedLoop]:
    """Back-to-back repeats of sequences of two or more operations.

    The scan is bounded by ``advanced_loops.max_sequence_length`` so very long
    sessions stay tractable.
    """
    session = coerce_session(session)
    cfg = get_section("advanced_loops")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    keys = _keys(ops)
    total = len(ops)
    max_length = min(total // 2, cfg["max_sequence_length"])

    reported: List[Tuple[int, int]] = []
    loops: List[AdvancedLoop] = []
    for length in range(2, max_length + 1):
        i = 0
        while i <= total - 2 * length:
            window = keys[i:i + length]
            if window != keys[i + length:i + 2 * length]:
                i += 1
                continue

            count = 2
            lookahead = i + 2 * length
            while lookahead + length <= total and keys[lookahead:lookahead + length] == window:
                count += 1
                lookahead += length
            end = i + count * length - 1

            if is_productive_sequence(i, length, count, ops, cfg):
                log.debug("sequence of %d x%d at %d suppressed as productive", length, count, i)
            elif _overlaps_any(i, end, reported):
                log.debug("sequence of %d x%d at %d overlaps a reported loop", length, count, i)
            else:
                reported.append((i, end))
                loops.append(AdvancedLoop(
                    provenance=provenance(
                        PatternType.ADVANCED_LOOP,
                        session.session_id,
                        ConfidenceLevel.HIGH if count >= 3 else ConfidenceLevel.MEDIUM,
                    ),
                    tool_sequence=tuple(name for name, _ in window),
                    count=count,
                    start_index=i,
                    end_index=end,
                    length=length,
                ))
            i = end + 1

    loops.sort(key=lambda loop: loop.start_index)
    return loops


def detect_plan_editing_loops(session: Any) -> List[PlanEditingLoop]:
    """Consecutive edits of the same plan file, grouped into runs."""
    session = coerce_session(session)
    cfg = get_section("plan_editing_loops")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    marker = cfg["path_marker"]
    edits = [
        op for op in session.tool_operations
        if op.name == "Edit" and marker in (file_path_of(op) or "")
    ]

    runs: List[List[ToolOperation]] = []
    for op in edits:
        if runs and file_path_of(runs[-1][-1]) == file_path_of(op):
            runs[-1].append(op)
        else:
            runs.append([op])

    return [
        PlanEditingLoop(
            provenance=provenance(
                PatternType.PLAN_EDITING_LOOP,
                session.session_id,
                ConfidenceLevel.HIGH if len(run) > 2 else ConfidenceLevel.MEDIUM,
            ),
            file_path=file_path_of(run[0]) or "",
            count=len(run),
            start_index=run[0].operation_index,
            end_index=run[-1].operation_index,
            operation_indices=tuple(op.operation_index for op in run),
        )
        for run in runs
        if len(run) >= 2
    ]
