"""
Success detectors: the mirror image of the struggle detectors.

- problem solving success: errors met with investigation, a fix and a
  verified pass
- collaboration effectiveness: assistant proposals that turned into
  successful edits and positive replies
- productive sessions: substantial sessions with low error rates, planning
  or completion signals

A session with nothing to solve is not a success; the problem-solving
detector skips sessions without a single error or failure.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .long_sessions import COMPLETION_MARKERS
from .models import ConversationMessage, ToolOperation, coerce_session, command_of, pattern_of, todos_of
from .signals import (
    INVESTIGATION_TOOLS,
    MUTATION_TOOLS,
    PROGRESS_TRACKING_TOOLS,
    SHELL_TOOL,
    error_rate,
    output_contains,
)
from .thresholds import get_section

VERIFIED_MARKERS = ("pass", "successful")
COMPLEXITY_MARKERS = ("database", "connection", "timeout", "typescript", "build failed", "multiple")
STEPWISE_MARKERS = (("3 error", "Reduced to"), ("1 error", "error remaining"))
VALIDATION_KINDS = ("test", "build", "start", "health")
# (error text, grep pattern) keyword pairs that tie a search to a failure.
TARGETED_GREP_PAIRS = (
    ("map", ("map",)),
    ("module", ("module",)),
    ("import", ("import",)),
    ("undefined", ("null", "undefined")),
)
_NUMBERED_ERROR = re.compile(r"\d+.*error", re.IGNORECASE)


def _is_verified_pass(op: ToolOperation) -> bool:
    return op.name == SHELL_TOOL and op.is_success and output_contains(op, *VERIFIED_MARKERS)


# --------------- Problem solving ---------------

@dataclass
class _FixCycle:
    start_index: int
    attempts: int = 0
    successful: bool = False
    end_index: Optional[int] = None


def error_fix_cycles(ops: Sequence[ToolOperation]) -> List[_FixCycle]:
    """Each error opens a cycle; edits count as attempts; a verified pass closes it."""
    cycles: List[_FixCycle] = []
    current: Optional[_FixCycle] = None
    for i, op in enumerate(ops):
        if op.is_error or output_contains(op, "error"):
            if current:
                cycles.append(current)
            current = _FixCycle(start_index=i)
        if current and op.name in MUTATION_TOOLS:
            current.attempts += 1
        if current and _is_verified_pass(op):
            current.successful = True
            current.end_index = i
            cycles.append(current)
            current = None
    if current:
        cycles.append(current)
    return cycles


@dataclass(frozen=True)
class _Approach:
    quality: float
    investigation: float
    understanding: float
    clarity: float


def _has_targeted_grep(ops: Sequence[ToolOperation]) -> bool:
    error_texts = [(op.output or "").lower() for op in ops if op.is_error]
    patterns = [(pattern_of(op) or "").lower() for op in ops if op.name == "Grep" and pattern_of(op)]
    for text in error_texts:
        for pattern in patterns:
            for error_word, pattern_words in TARGETED_GREP_PAIRS:
                if error_word in text and any(word in pattern for word in pattern_words):
                    return True
    return False


def _longest_investigation_run(ops: Sequence[ToolOperation]) -> int:
    longest = run = 0
    for op in ops:
        run = run + 1 if op.name in INVESTIGATION_TOOLS else 0
        longest = max(longest, run)
    return longest


def systematic_approach(ops: Sequence[ToolOperation]) -> _Approach:
    investigation = understanding = clarity = 0.0
    investigative = [i for i, op in enumerate(ops) if op.name in INVESTIGATION_TOOLS]
    solutions = [i for i, op in enumerate(ops) if op.name in MUTATION_TOOLS]
    verified = [op for op in ops if _is_verified_pass(op)]

    if any(op.is_error for op in ops) and _has_targeted_grep(ops):
        understanding += 0.6

    if investigative and solutions and sum(investigative) / len(investigative) < sum(solutions) / len(solutions):
        investigation += 0.5
    if len(investigative) >= 2:
        investigation += 0.3

    longest = _longest_investigation_run(ops)
    if longest >= 2:
        investigation += 0.4 + (longest - 2) * 0.1

    targeted = 0
    for prev, curr in zip(ops, ops[1:]):
        if prev.name in INVESTIGATION_TOOLS and curr.name in ("Edit", "Write", SHELL_TOOL):
            investigation += 0.2
        if curr.name == "Grep" and pattern_of(curr):
            targeted += 1
            understanding += 0.2

    if investigative and verified:
        clarity += 0.5
    if len(verified) > 1:
        clarity += 0.4
    if len(investigative) >= 2:
        clarity += 0.3

    return _Approach(
        quality=min(investigation + understanding + clarity, 1.0),
        investigation=min(investigation, 1.0),
        understanding=min(understanding, 1.0),
        clarity=min(clarity + (0.2 if targeted else 0.0), 1.0),
    )


@dataclass(frozen=True)
class _Efficiency:
    attempts: int
    successful: bool
    score: float
    stickiness: float
    stepwise_progress: float
    completeness: float
    verification: float
    environmental_validation: float


def resolution_efficiency(ops: Sequence[ToolOperation]) -> _Efficiency:
    errors = sum(1 for op in ops if op.is_error)
    fixes = sum(1 for op in ops if op.name in MUTATION_TOOLS)
    passes = [i for i, op in enumerate(ops) if _is_verified_pass(op)]
    attempts = fixes / errors if errors else float(fixes)

    stickiness = 0.0
    if passes:
        stickiness = 0.5 if any(op.is_error for op in ops[passes[-1] + 1:]) else 1.0

    indicators = sum(
        1 for op in ops for markers in STEPWISE_MARKERS if output_contains(op, *markers)
    )

    kinds = set()
    for op in ops:
        command = command_of(op) if op.name == SHELL_TOOL else None
        if command:
            kinds.update(kind for kind in VALIDATION_KINDS if kind in command)
    validation = 0.9 if len(kinds) > 1 else (0.6 if kinds else 0.3)

    successful = bool(passes)
    score = 1.0 - min(max(attempts - 1, 0.0), 1.0) * 0.5 if successful else 0.0
    return _Efficiency(
        attempts=int(round(attempts)),
        successful=successful,
        score=score,
        stickiness=stickiness,
        stepwise_progress=0.9 if indicators > 1 else 0.3,
        completeness=0.9 if successful and stickiness > 0.8 else 0.6,
        verification=min(len(passes) / max(errors, 1), 1.0),
        environmental_validation=validation,
    )


def _problem_complexity(ops: Sequence[ToolOperation]):
    complexity, decomposition, category = 0.5, 0.3, "general"
    if any(op.output and any(m in op.output.lower() for m in COMPLEXITY_MARKERS) for op in ops):
        complexity, decomposition = 0.8, 0.7
    if any(output_contains(op, "build", "webpack") for op in ops):
        category = "build_configuration"
    if sum(1 for op in ops if op.output and _NUMBERED_ERROR.search(op.output)) > 2:
        decomposition = 0.9
    return complexity, decomposition, category


def has_problems(ops: Sequence[ToolOperation]) -> bool:
    return any(op.is_error or output_contains(op, "fail") for op in ops)


@dataclass(frozen=True)
class ProblemSolvingSuccess(PatternRecord):
    success_score: float
    resolution_attempts: int
    efficiency_score: float
    systematic_approach: float
    complexity_score: float
    investigation_quality: float
    solution_stickiness: float
    error_to_solution_ratio: float
    understanding_quality: float
    verification_completeness: float
    problem_decomposition: float
    stepwise_progress: float
    resolution_completeness: float
    problem_category: str
    resolution_clarity: float
    environmental_validation: float
    type: str = "problem_solving_success"


def detect_problem_solving_success(session: Any) -> List[ProblemSolvingSuccess]:
    """Errors resolved efficiently after systematic investigation."""
    session = coerce_session(session)
    cfg = get_section("problem_solving")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    cycles = error_fix_cycles(ops)
    approach = systematic_approach(ops)
    efficiency = resolution_efficiency(ops)

    resolved = any(c.successful for c in cycles)
    systematic = approach.quality >= cfg["systematic_threshold"]
    efficient = efficiency.attempts <= 2 and efficiency.successful
    if not (resolved or systematic or efficient):
        return []
    if not has_problems(ops):
        return []

    cycle_score = sum(1 for c in cycles if c.successful) / len(cycles) if cycles else 0.0
    score = (
        cycle_score * cfg["cycle_weight"]
        + approach.quality * cfg["systematic_weight"]
        + efficiency.score * cfg["efficiency_weight"]
    )
    if score < cfg["success_threshold"]:
        return []

    best = next((c for c in cycles if c.successful), cycles[0] if cycles else None)
    complexity, decomposition, category = _problem_complexity(ops)
    return [ProblemSolvingSuccess(
        provenance=provenance(
            PatternType.PROBLEM_SOLVING_SUCCESS,
            session.session_id,
            ConfidenceLevel.HIGH if score >= cfg["high_confidence"] else ConfidenceLevel.MEDIUM,
        ),
        success_score=score,
        resolution_attempts=(best.attempts if best else 0) or efficiency.attempts,
        efficiency_score=efficiency.score,
        systematic_approach=approach.quality,
        complexity_score=complexity,
        investigation_quality=approach.investigation,
        solution_stickiness=efficiency.stickiness,
        error_to_solution_ratio=min(error_rate(ops) * cfg["error_ratio_scale"], 1.0),
        understanding_quality=approach.understanding,
        verification_completeness=efficiency.verification,
        problem_decomposition=decomposition,
        stepwise_progress=efficiency.stepwise_progress,
        resolution_completeness=efficiency.completeness,
        problem_category=category,
        resolution_clarity=approach.clarity,
        environmental_validation=efficiency.environmental_validation,
    )]


# --------------- Collaboration ---------------

SOLUTION_PHRASES = ("Here's", "I'll", "recommendation", "implement", "solution")
POSITIVE_PHRASES = ("perfect", "exactly", "great", "worked", "thanks")
NEGATIVE_PHRASES = ("didn't work", "not working", "not helpful", "I'll figure it out myself")
GUIDANCE_PHRASES = ("guide", "First", "then", "look for")
COMPLEX_TOPICS = ("complex", "timeout", "connection", "database", "configuration")
REVERT_MARKERS = ("Reverted", "Manual fix")


@dataclass(frozen=True)
class CollaborationEffectiveness(PatternRecord):
    effectiveness_score: float
    implementation_success_rate: float
    conversation_efficiency: float
    solution_clarity: float
    back_and_forth_count: int
    complexity_score: float
    guidance_effectiveness: float
    research_type: Optional[str]
    total_tools_used: int
    type: str = "ai_collaboration_effectiveness"


def _exchanges(conversation: Sequence[ConversationMessage]) -> int:
    turns = sum(1 for prev, curr in zip(conversation, conversation[1:]) if prev.role != curr.role)
    return turns // 2


def _solution_clarity(conversation: Sequence[ConversationMessage]) -> float:
    replies = [
        curr for prev, curr in zip(conversation, conversation[1:])
        if curr.role == "user" and prev.role == "assistant"
    ]
    if not replies:
        return 0.0
    positive = sum(1 for msg in replies if any(p in msg.content.lower() for p in POSITIVE_PHRASES))
    return positive / len(replies)


def detect_collaboration_effectiveness(session: Any) -> List[CollaborationEffectiveness]:
    """Assistant proposals that turned into working changes the user liked."""
    session = coerce_session(session)
    cfg = get_section("collaboration")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []
    conversation = session.conversation
    if len(conversation) < cfg["min_messages"]:
        return []

    ops = session.tool_operations
    assistant = [m for m in conversation if m.role == "assistant"]
    proposals = sum(1 for m in assistant if any(p in m.content for p in SOLUTION_PHRASES))
    implementations = [op for op in ops if op.name in MUTATION_TOOLS]
    landed = sum(1 for op in implementations if op.is_success)
    efficiency = min(landed / proposals, 1.0) if proposals else 0.0
    success_rate = landed / len(implementations) if implementations else 0.0
    clarity = _solution_clarity(conversation)

    research = sum(1 for op in ops if op.name in INVESTIGATION_TOOLS)
    guided = research >= 3 and any(any(p in m.content for p in GUIDANCE_PHRASES) for m in assistant)
    if any(any(t in m.content for t in COMPLEX_TOPICS) for m in conversation):
        complexity = 0.8
    else:
        complexity = 0.7 if len({op.name for op in ops}) > 4 else 0.5

    failed_tests = any(
        op.name == SHELL_TOOL and op.is_error and output_contains(op, "failed", "error") for op in ops
    )
    reverts = any(output_contains(op, *REVERT_MARKERS) for op in ops)
    negative = any(m.role == "user" and any(p in m.content for p in NEGATIVE_PHRASES) for m in conversation)
    if (failed_tests and reverts) or negative:
        return []

    score = min(
        efficiency * cfg["efficiency_weight"]
        + success_rate * cfg["implementation_weight"]
        + clarity * cfg["clarity_weight"]
        + complexity * cfg["problem_solving_weight"],
        1.0,
    )
    if score < cfg["effectiveness_threshold"]:
        return []

    return [CollaborationEffectiveness(
        provenance=provenance(
            PatternType.COLLABORATION_EFFECTIVENESS,
            session.session_id,
            ConfidenceLevel.HIGH if score >= cfg["high_confidence"] else ConfidenceLevel.MEDIUM,
        ),
        effectiveness_score=score,
        implementation_success_rate=success_rate,
        conversation_efficiency=efficiency,
        solution_clarity=clarity,
        back_and_forth_count=_exchanges(conversation),
        complexity_score=complexity,
        guidance_effectiveness=0.9 if guided else 0.6,
        research_type="guided_investigation" if guided else None,
        total_tools_used=len(ops),
    )]


# --------------- Productive sessions ---------------

PRODUCTIVE_COMPLETION_MARKERS = COMPLETION_MARKERS + ("all tests passed", "build completed")


@dataclass(frozen=True)
class _Productivity:
    tool_count: int
    error_rate: float
    tool_error_ratio: float
    systematic_progression: bool
    planning_indicators: bool
    completion_signals: bool
    error_resolution: bool
    clean_implementation: bool
    duration_minutes: float
    score: float


def _completed_todo(op: ToolOperation) -> bool:
    return any(isinstance(todo, Mapping) and todo.get("status") == "completed" for todo in todos_of(op))


def _steady_progression(ops: Sequence[ToolOperation]) -> bool:
    read_then_write = sum(
        1 for curr, nxt in zip(ops, ops[1:]) if curr.name == "Read" and nxt.name in ("Edit", "Write")
    )
    test_runs = sum(
        1 for op in ops
        if op.name == SHELL_TOOL and any(m in (command_of(op) or "").lower() for m in ("test", "npm run"))
    )
    writes = sum(1 for op in ops if op.name == "Write")
    todo_writes = sum(1 for op in ops if op.name in PROGRESS_TRACKING_TOOLS)
    return read_then_write >= 2 or test_runs >= 1 or writes >= 2 or todo_writes >= 2


def _finished(ops: Sequence[ToolOperation], window: int) -> bool:
    for op in ops[-window:]:
        if op.output and any(m in op.output.lower() for m in PRODUCTIVE_COMPLETION_MARKERS):
            return True
        if op.name in PROGRESS_TRACKING_TOOLS and _completed_todo(op):
            return True
    return False


def _resolved_errors(ops: Sequence[ToolOperation]) -> bool:
    for a, b, c, d in zip(ops, ops[1:], ops[2:], ops[3:]):
        if a.is_error and b.name == "Read" and c.name == "Edit" and d.is_success:
            return True
    shell_failed = False
    for op in ops:
        if op.name != SHELL_TOOL:
            continue
        if op.is_error:
            shell_failed = True
        elif shell_failed:
            return True
    return False


def _is_clean(ops: Sequence[ToolOperation], rate: float, cfg: Mapping[str, Any]) -> bool:
    if len(ops) >= cfg["clean_min_tools"] and rate < cfg["clean_error_rate"]:
        return True
    edits = sum(1 for op in ops if op.name in ("Write", "Edit"))
    return edits >= cfg["clean_min_edits"] and rate < cfg["clean_edit_error_rate"]


def _productivity_score(p: _Productivity, cfg: Mapping[str, Any]) -> float:
    score = max(0.0, (1 - p.error_rate) * cfg["accuracy_weight"])
    if p.tool_count > cfg["volume_tools"]:
        score += cfg["volume_bonus"]
    if p.tool_count > cfg["high_volume_tools"]:
        score += cfg["high_volume_bonus"]
    for flag, bonus in (
        (p.systematic_progression, "systematic_bonus"),
        (p.planning_indicators, "planning_bonus"),
        (p.completion_signals, "completion_bonus"),
        (p.error_resolution, "resolution_bonus"),
        (p.clean_implementation, "clean_bonus"),
    ):
        if flag:
            score += cfg[bonus]
    if cfg["focused_min_minutes"] < p.duration_minutes < cfg["focused_max_minutes"]:
        score += cfg["focused_bonus"]
    return min(1.0, score)


def analyze_session_productivity(
    ops: Sequence[ToolOperation], duration_seconds: float, cfg: Optional[Mapping[str, Any]] = None,
) -> _Productivity:
    if cfg is None:
        cfg = get_section("productive_sessions")
    errors = sum(1 for op in ops if op.is_error)
    rate = error_rate(ops)
    draft = _Productivity(
        tool_count=len(ops),
        error_rate=rate,
        tool_error_ratio=len(ops) / errors if errors else float(len(ops)),
        systematic_progression=_steady_progression(ops),
        planning_indicators=any(op.name in PROGRESS_TRACKING_TOOLS for op in ops),
        completion_signals=_finished(ops, cfg["completion_window"]),
        error_resolution=_resolved_errors(ops),
        clean_implementation=_is_clean(ops, rate, cfg),
        duration_minutes=duration_seconds / 60,
        score=0.0,
    )
    return dataclasses.replace(draft, score=_productivity_score(draft, cfg))


def classify_productivity(p: _Productivity, cfg: Optional[Mapping[str, Any]] = None):
    """Return (type, description) for the first matching class, else None."""
    if cfg is None:
        cfg = get_section("productive_sessions")
    rate = p.error_rate
    if p.tool_count > cfg["ultra_volume_tools"] and rate < cfg["ultra_volume_error_rate"]:
        return "high_productivity", "Ultra-high volume systematic development work"
    if p.clean_implementation and p.tool_count >= cfg["clean_min_tools"]:
        return "clean_implementation", "Clean implementation with minimal errors"
    if p.error_resolution and cfg["resolution_min_error_rate"] < rate < cfg["resolution_max_error_rate"]:
        return "effective_problem_solving", "Efficient problem resolution"
    if p.completion_signals and rate < cfg["completion_error_rate"]:
        return "successful_completion", "Task completed successfully with clear completion signals"
    if p.tool_count > cfg["high_volume_tools"] and rate < cfg["high_volume_error_rate"]:
        return "high_productivity", "High-volume systematic development work"
    if p.planning_indicators and rate < cfg["planned_error_rate"]:
        return "high_productivity", "Well-organized session with good planning"
    if p.score > cfg["productive_score"]:
        return "high_productivity", "High productivity session"
    return None


@dataclass(frozen=True)
class ProductiveSession(PatternRecord):
    type: str
    description: str
    duration: float
    tool_count: int
    error_rate: float
    tool_error_ratio: float
    productivity_score: float
    has_systematic_progression: bool
    has_planning_indicators: bool
    has_completion_signals: bool
    has_error_resolution: bool
    is_clean_implementation: bool


def detect_productive_sessions(session: Any) -> List[ProductiveSession]:
    session = coerce_session(session)
    cfg = get_section("productive_sessions")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []
    if session.duration_seconds < cfg["min_duration_seconds"]:
        return []

    p = analyze_session_productivity(session.tool_operations, session.duration_seconds, cfg)
    classified = classify_productivity(p, cfg)
    if classified is None:
        return []

    kind, description = classified
    return [ProductiveSession(
        provenance=provenance(
            PatternType.PRODUCTIVE_SESSION,
            session.session_id,
            ConfidenceLevel.HIGH if p.score > cfg["high_confidence"] else ConfidenceLevel.MEDIUM,
        ),
        type=kind,
        description=description,
        duration=session.duration_seconds,
        tool_count=p.tool_count,
        error_rate=p.error_rate,
        tool_error_ratio=p.tool_error_ratio,
        productivity_score=p.score,
        has_systematic_progression=p.systematic_progression,
        has_planning_indicators=p.planning_indicators,
        has_completion_signals=p.completion_signals,
        has_error_resolution=p.error_resolution,
        is_clean_implementation=p.clean_implementation,
    )]
