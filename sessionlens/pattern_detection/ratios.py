"""
Whole-session ratio detectors.

Each computes a ratio or threshold over the session and emits at most one
record: reading spirals, shotgun debugging, excessive context switching and
sessions without a single successful operation.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import coerce_session, file_path_of
from .signals import ACTION_TOOLS, FILE_OP_TOOLS, READ_TOOLS, base_name
from .thresholds import get_section


@dataclass(frozen=True)
class ReadingSpiral(PatternRecord):
    read_count: int
    action_count: int
    ratio: float
    unique_files: int
    type: str = "reading_spiral"


@dataclass(frozen=True)
class ShotgunDebugging(PatternRecord):
    tool_variety: int
    total_tools: int
    duration_minutes: float
    diversity_ratio: float
    tool_velocity: float
    type: str = "shotgun_debugging"


@dataclass(frozen=True)
class FileTouch:
    file: str
    count: int

    def to_dict(self):
        return {"file": self.file, "count": self.count}


@dataclass(frozen=True)
class ContextSwitching(PatternRecord):
    unique_files: int
    total_file_ops: int
    switches: int
    avg_ops_per_file: float
    switch_rate: float
    top_files: Tuple[FileTouch, ...]
    type: str = "excessive_context_switching"


@dataclass(frozen=True)
class NoProgress(PatternRecord):
    total_operations: int
    error_count: int
    start_index: int
    end_index: int
    type: str = "no_progress"


def detect_reading_spirals(session: Any) -> List[ReadingSpiral]:
    """Many autonomous reads with little editing."""
    session = coerce_session(session)
    cfg = get_section("reading_spirals")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    autonomous = [op for op in ops if not op.is_user_directed]
    reads = [op for op in autonomous if op.name in READ_TOOLS]
    actions = [op for op in autonomous if op.name in ACTION_TOOLS]
    user_directed_reads = sum(1 for op in ops if op.name in READ_TOOLS and op.is_user_directed)

    ratio = len(reads) / max(len(actions), 1)
    if user_directed_reads > cfg["user_directed_reads"]:
        ratio *= cfg["user_directed_multiplier"]

    if len(reads) > cfg["min_reads"] and (len(actions) < cfg["max_actions"] or ratio > cfg["max_ratio"]):
        return [ReadingSpiral(
            provenance=provenance(
                PatternType.READING_SPIRAL,
                session.session_id,
                ConfidenceLevel.HIGH if ratio > cfg["high_ratio"] else ConfidenceLevel.MEDIUM,
            ),
            read_count=len(reads),
            action_count=len(actions),
            ratio=round(ratio, 1),
            unique_files=len({file_path_of(op) for op in reads if file_path_of(op)}),
        )]
    return []


def detect_shotgun_debugging(session: Any) -> List[ShotgunDebugging]:
    """Many different tools used quickly by the assistant on its own."""
    session = coerce_session(session)
    cfg = get_section("shotgun_debugging")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    autonomous = [op for op in session.tool_operations if not op.is_user_directed]
    if len(autonomous) < cfg["min_autonomous"]:
        return []

    variety = len({op.name for op in autonomous})
    total = len(autonomous)
    minutes = session.duration_seconds / 60
    diversity = variety / total
    velocity = total / max(minutes, 1)

    if (
        variety >= cfg["min_tool_variety"]
        and total >= cfg["min_total_tools"]
        and (
            velocity > cfg["velocity_threshold"]
            or (diversity > cfg["diversity_threshold"] and minutes < cfg["max_duration_minutes"])
        )
    ):
        return [ShotgunDebugging(
            provenance=provenance(
                PatternType.SHOTGUN_DEBUGGING,
                session.session_id,
                ConfidenceLevel.HIGH if velocity > cfg["high_velocity"] else ConfidenceLevel.MEDIUM,
            ),
            tool_variety=variety,
            total_tools=total,
            duration_minutes=round(minutes, 1),
            diversity_ratio=round(diversity, 2),
            tool_velocity=round(velocity, 1),
        )]
    return []


def detect_context_switching(session: Any) -> List[ContextSwitching]:
    """Hopping across many files with only a few operations on each."""
    session = coerce_session(session)
    cfg = get_section("context_switching")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    paths = [
        file_path_of(op) for op in session.tool_operations
        if op.name in FILE_OP_TOOLS and file_path_of(op)
    ]
    if len(paths) < cfg["min_file_operations"]:
        return []

    frequency = Counter(paths)
    switches = sum(1 for prev, curr in zip(paths, paths[1:]) if prev != curr)
    unique = len(frequency)
    avg_ops = len(paths) / unique
    switch_rate = switches / len(paths)

    if unique > cfg["min_unique_files"] and avg_ops < cfg["max_ops_per_file"] and switch_rate > cfg["switch_rate"]:
        # Counter.most_common keeps first-seen order among ties.
        top = tuple(FileTouch(file=base_name(path), count=count) for path, count in frequency.most_common(cfg["top_files"]))
        return [ContextSwitching(
            provenance=provenance(
                PatternType.CONTEXT_SWITCHING,
                session.session_id,
                ConfidenceLevel.HIGH if switch_rate > cfg["high_switch_rate"] else ConfidenceLevel.MEDIUM,
            ),
            unique_files=unique,
            total_file_ops=len(paths),
            switches=switches,
            avg_ops_per_file=round(avg_ops, 1),
            switch_rate=round(switch_rate, 2),
            top_files=top,
        )]
    return []


def detect_no_progress_sessions(session: Any) -> List[NoProgress]:
    """Sessions where not a single operation succeeded."""
    session = coerce_session(session)
    cfg = get_section("no_progress")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    if any(op.is_success for op in ops):
        return []
    return [NoProgress(
        provenance=provenance(PatternType.NO_PROGRESS, session.session_id, ConfidenceLevel.HIGH),
        total_operations=len(ops),
        error_count=sum(1 for op in ops if op.is_error),
        start_index=0,
        end_index=len(ops) - 1,
    )]
