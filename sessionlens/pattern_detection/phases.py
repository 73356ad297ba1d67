"""
Phase classifier.

Slides an adaptive window over the operation sequence, scores each window for
exploration / implementation / testing signals, then consolidates the
overlapping windows into ordered, disjoint phases that cover every operation
exactly once. Phase-aware detectors use the result to suppress behavior that
is normal for the phase it happens in.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..diagnostics import log_debug
from .base import PatternRecord, PatternType, PhaseType, confidence_level, provenance
from .models import Session, ToolOperation, coerce_session, command_of
from .signals import INVESTIGATION_TOOLS, MUTATION_TOOLS, SEARCH_ONLY_TOOLS, SHELL_TOOL
from .thresholds import get_section

SIGNAL_NAMES = (
    "read_operations",
    "search_operations",
    "edit_operations",
    "test_operations",
    "build_operations",
    "exploration_patterns",
    "implementation_patterns",
    "testing_patterns",
)


@dataclass(frozen=True)
class Phase(PatternRecord):
    type: PhaseType
    start_index: int
    end_index: int
    confidence: float
    signals: Dict[str, int] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return self.end_index - self.start_index + 1

    def covers(self, index: int) -> bool:
        return self.start_index <= index <= self.end_index

    def overlaps(self, start: int, end: int) -> bool:
        return not (self.end_index < start or self.start_index > end)


@dataclass
class _WindowSignals:
    read_operations: int = 0
    search_operations: int = 0
    edit_operations: int = 0
    test_operations: int = 0
    build_operations: int = 0
    exploration_patterns: int = 0
    implementation_patterns: int = 0
    testing_patterns: int = 0

    def observe(self, op: ToolOperation) -> None:
        if op.name in INVESTIGATION_TOOLS:
            self.read_operations += 1
            self.exploration_patterns += 1
        if op.name in SEARCH_ONLY_TOOLS:
            self.search_operations += 1
            self.exploration_patterns += 1
        if op.name in MUTATION_TOOLS:
            self.edit_operations += 1
            self.implementation_patterns += 1
        if op.name == SHELL_TOOL:
            command = command_of(op) or ""
            if "test" in command or "build" in command or "npm run" in command:
                self.test_operations += 1
                self.testing_patterns += 1
            if "build" in command or "compile" in command:
                self.build_operations += 1
                self.testing_patterns += 1

    def category_count(self) -> int:
        return sum(1 for c in (self.exploration_patterns, self.implementation_patterns, self.testing_patterns) if c > 0)

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in SIGNAL_NAMES}


@dataclass
class _Segment:
    type: PhaseType
    start: int
    end: int
    confidence: float
    signals: Dict[str, int]

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def absorb(self, other: "_Segment") -> None:
        total = self.length + other.length
        self.confidence = (self.confidence * self.length + other.confidence * other.length) / total
        self.end = max(self.end, other.end)
        for key, value in other.signals.items():
            self.signals[key] = self.signals.get(key, 0) + value


def window_size_for(total: int, cfg: Optional[Mapping[str, Any]] = None) -> int:
    cfg = cfg or get_section("phases")
    raw = math.ceil(total / cfg["window_divisor"])
    return max(cfg["min_window"], min(cfg["max_window"], raw))


def classify_window(window: Sequence[ToolOperation], cfg: Optional[Mapping[str, Any]] = None) -> _Segment:
    """Classify one window; start/end are left at 0 for the caller to set."""
    cfg = cfg or get_section("phases")
    signals = _WindowSignals()
    for op in window:
        signals.observe(op)

    total = len(window)
    scores = {
        PhaseType.EXPLORATION: signals.exploration_patterns / total * cfg["exploration_weight"],
        PhaseType.IMPLEMENTATION: signals.implementation_patterns / total * cfg["implementation_weight"],
        PhaseType.TESTING: signals.testing_patterns / total * cfg["testing_weight"],
    }
    max_score = max(scores.values())
    dominant = next(kind for kind, score in scores.items() if score == max_score)

    confidence = max_score
    if signals.exploration_patterns >= 3 and signals.edit_operations == 0:
        confidence = min(0.9, confidence + cfg["exploration_boost"])
    elif signals.edit_operations >= 2 and signals.search_operations <= 1:
        confidence = min(0.9, confidence + cfg["implementation_boost"])
    elif signals.test_operations >= 1 and total <= 5:
        confidence = min(0.8, confidence + cfg["testing_boost"])

    categories = signals.category_count()
    if categories >= 3:
        confidence *= cfg["mixed_signal_penalty"]

    phase_type = dominant
    if confidence < cfg["min_confidence"] or max_score < cfg["min_score"]:
        phase_type = PhaseType.MIXED if categories >= 2 else PhaseType.UNKNOWN
        confidence = max(0.1, confidence)

    return _Segment(
        type=phase_type,
        start=0,
        end=0,
        confidence=min(1.0, confidence),
        signals=signals.as_dict(),
    )


def _raw_segments(operations: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> List[_Segment]:
    total = len(operations)
    size = window_size_for(total, cfg)
    stride = max(1, size // 2)
    segments = []
    for start in range(0, total, stride):
        end = min(start + size, total)
        segment = classify_window(operations[start:end], cfg)
        segment.start = start
        segment.end = end - 1
        segments.append(segment)
    return segments


def _consolidate(segments: List[_Segment], merge_gap: int) -> List[_Segment]:
    if not segments:
        return []

    merged = [segments[0]]
    for segment in segments[1:]:
        current = merged[-1]
        if current.type == segment.type and segment.start <= current.end + merge_gap:
            current.absorb(segment)
        else:
            merged.append(segment)

    # Windows overlap; trim each phase to start after its predecessor.
    disjoint: List[_Segment] = []
    for segment in merged:
        if disjoint:
            previous = disjoint[-1]
            if segment.end <= previous.end:
                continue
            if segment.start > previous.end + 1:
                previous.end = segment.start - 1
            segment.start = max(segment.start, previous.end + 1)
            if previous.type == segment.type:
                previous.absorb(segment)
                continue
        disjoint.append(segment)
    return disjoint


def detect_session_phases(session: Any) -> List[Phase]:
    """Segment a session into ordered, non-overlapping behavioral phases."""
    session = coerce_session(session)
    if session is None or not session.tool_operations:
        return []

    cfg = get_section("phases")
    segments = _consolidate(_raw_segments(session.tool_operations, cfg), cfg["merge_gap"])
    return [
        Phase(
            provenance=provenance(
                PatternType.SESSION_PHASE,
                session.session_id,
                confidence_level(s.confidence, cfg["high_confidence"], cfg["medium_confidence"]),
            ),
            type=s.type,
            start_index=s.start,
            end_index=s.end,
            confidence=s.confidence,
            signals=dict(s.signals),
        )
        for s in segments
    ]


def coerce_phases(phases: Any, session_id: str = "") -> List[Phase]:
    """Accept Phase objects or their dict form; anything else is dropped."""
    if not phases:
        return []
    result: List[Phase] = []
    for item in phases:
        if isinstance(item, Phase):
            result.append(item)
            continue
        if not isinstance(item, Mapping):
            log_debug("phases", f"ignoring phase of type {type(item).__name__}")
            continue
        try:
            start = int(item.get("start_index", item.get("startIndex")))
            end = int(item.get("end_index", item.get("endIndex")))
            phase_type = PhaseType(item.get("type"))
            confidence = float(item.get("confidence", 0.0))
        except (TypeError, ValueError):
            log_debug("phases", f"ignoring malformed phase {item!r}")
            continue
        result.append(Phase(
            provenance=provenance(PatternType.SESSION_PHASE, session_id, confidence_level(confidence)),
            type=phase_type,
            start_index=start,
            end_index=end,
            confidence=confidence,
            signals=dict(item.get("signals") or {}),
        ))
    return result


def find_phase(phases: Sequence[Phase], index: int) -> Optional[Phase]:
    for phase in phases:
        if phase.covers(index):
            return phase
    return None


def in_confident_exploration(phases: Sequence[Phase], start: int, end: int, min_confidence: float) -> bool:
    """True when [start, end] overlaps an exploration phase at or above min_confidence."""
    return any(
        phase.type == PhaseType.EXPLORATION and phase.overlaps(start, end) and phase.confidence >= min_confidence
        for phase in phases
    )


def phase_operations(session: Session, phase: Phase) -> Sequence[ToolOperation]:
    return session.tool_operations[phase.start_index:phase.end_index + 1]
