"""
Long session detector.

A session over the duration threshold is only flagged when it does not look
productive (completion signals, systematic progression, a fast low-error
pace) and does look problematic (high error rate, the same command failing
again and again, or a very long session with moderate errors).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import ToolOperation, coerce_session, command_of
from .signals import PROGRESS_TRACKING_TOOLS, SHELL_TOOL, error_rate
from .thresholds import get_section

COMPLETION_MARKERS = ("tests passed", "success", "completed successfully", "✅")


@dataclass(frozen=True)
class ProductivityAnalysis:
    error_rate: float
    tools_per_minute: float
    tool_count: int
    error_count: int
    repetitive_errors: bool
    completion_signals: bool
    systematic_progression: bool
    duration_minutes: float


@dataclass(frozen=True)
class LongSession(PatternRecord):
    duration: float
    error_rate: float
    tools_per_minute: float
    repetitive_errors: bool
    completion_signals: bool
    type: str = "problematic_long_session"


def has_repetitive_errors(ops: Sequence[ToolOperation], min_count: int) -> bool:
    """The same command failed at least ``min_count`` times."""
    failures = Counter(command_of(op) for op in ops if op.is_error and command_of(op))
    return any(count >= min_count for count in failures.values())


def has_completion_signals(ops: Sequence[ToolOperation], recent_window: int) -> bool:
    for op in ops[-recent_window:]:
        if op.output:
            text = op.output.lower()
            if any(marker in text for marker in COMPLETION_MARKERS):
                return True
        if op.name in PROGRESS_TRACKING_TOOLS and op.is_success:
            return True
    return False


def has_systematic_progression(ops: Sequence[ToolOperation]) -> bool:
    """Repeated planning, read-then-edit cycles or repeated test runs."""
    todo_writes = sum(1 for op in ops if op.name in PROGRESS_TRACKING_TOOLS)
    read_edit_cycles = sum(
        1 for current, following in zip(ops, ops[1:])
        if current.name == "Read" and following.name == "Edit"
    )
    test_runs = 0
    for op in ops:
        command = command_of(op) if op.name == SHELL_TOOL else None
        if command:
            command = command.lower()
            if "test" in command or "npm run" in command:
                test_runs += 1
    return todo_writes >= 2 or read_edit_cycles >= 3 or test_runs >= 2


def analyze_productivity(ops: Sequence[ToolOperation], duration_seconds: float, cfg: Mapping[str, Any]) -> ProductivityAnalysis:
    minutes = duration_seconds / 60
    return ProductivityAnalysis(
        error_rate=error_rate(ops),
        tools_per_minute=len(ops) / minutes if minutes > 0 else 0.0,
        tool_count=len(ops),
        error_count=sum(1 for op in ops if op.is_error),
        repetitive_errors=has_repetitive_errors(ops, cfg["repetitive_error_count"]),
        completion_signals=has_completion_signals(ops, cfg["recent_window"]),
        systematic_progression=has_systematic_progression(ops),
        duration_minutes=minutes,
    )


def is_productive(analysis: ProductivityAnalysis, cfg: Mapping[str, Any]) -> bool:
    if analysis.tool_count > cfg["high_tool_count"] and analysis.error_rate < cfg["productive_error_rate"]:
        return True
    if analysis.completion_signals:
        return True
    if analysis.systematic_progression and analysis.error_rate < cfg["systematic_error_rate"]:
        return True
    return analysis.tools_per_minute > cfg["fast_tools_per_minute"] and analysis.error_rate < cfg["fast_error_rate"]


def is_problematic(analysis: ProductivityAnalysis, cfg: Mapping[str, Any]) -> bool:
    if analysis.error_rate > cfg["problematic_error_rate"]:
        return True
    if analysis.repetitive_errors and analysis.error_rate > cfg["repetitive_error_rate"]:
        return True
    return (
        analysis.duration_minutes > cfg["very_long_minutes"]
        and analysis.error_rate > cfg["very_long_error_rate"]
        and not analysis.systematic_progression
    )


def detect_long_sessions(session: Any, threshold_seconds: Optional[float] = None) -> List[LongSession]:
    """Flag long sessions that are problematic rather than just complex."""
    session = coerce_session(session)
    cfg = get_section("long_sessions")
    if threshold_seconds is None:
        threshold_seconds = cfg["threshold_seconds"]
    if session is None or session.duration_seconds <= threshold_seconds or not session.tool_operations:
        return []

    analysis = analyze_productivity(session.tool_operations, session.duration_seconds, cfg)
    if is_productive(analysis, cfg) or not is_problematic(analysis, cfg):
        return []

    return [LongSession(
        provenance=provenance(
            PatternType.LONG_SESSION,
            session.session_id,
            ConfidenceLevel.HIGH if analysis.error_rate > cfg["high_error_rate"] else ConfidenceLevel.MEDIUM,
        ),
        duration=session.duration_seconds,
        error_rate=analysis.error_rate,
        tools_per_minute=analysis.tools_per_minute,
        repetitive_errors=analysis.repetitive_errors,
        completion_signals=analysis.completion_signals,
    )]
