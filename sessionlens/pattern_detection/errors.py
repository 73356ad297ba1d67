"""
Error pattern detector.

Collects, per session:
- consecutive same-tool error streaks (phase-aware)
- repeated "String to replace not found" edit failures
- user interruptions, command timeouts and git errors
- cross-tool failure chains
- session-wide high error density
- significant single errors (missing files, permissions, size limits), which
  are folded into an overlapping pattern instead of being reported twice
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, PhaseType, provenance
from .models import Session, ToolOperation, coerce_session, command_of
from .phases import Phase, coerce_phases, find_phase, phase_operations
from .signals import INVESTIGATION_TOOLS, SHELL_TOOL, excerpt, output_contains
from .thresholds import get_section

log = logging.getLogger("sessionlens.errors")

CONSECUTIVE_ERRORS = "consecutive_errors"
STRING_REPLACEMENT_FAILURE = "string_replacement_failure"
USER_INTERRUPTION = "user_interruption"
TIMEOUT = "timeout"
GIT_ERROR = "git_error"
CROSS_TOOL_FAILURE = "cross_tool_failure"
SESSION_QUALITY = "session_quality"
SIGNIFICANT_SINGLE_ERROR = "significant_single_error"

STRING_REPLACEMENT_MARKERS = (
    "String to replace not found in file",
    "<tool_use_error>String to replace not found",
)
INTERRUPTION_MARKERS = (
    "The user doesn't want to proceed",
    "The user doesn't want to take this action",
    "[Request interrupted by user",
)
TIMEOUT_MARKERS = ("timed out after",)
GIT_OUTPUT_MARKERS = ("github.com", "git pull", "merge conflict", "git push")
SIGNIFICANT_MARKERS = ("File does not exist", "exceeds maximum", "permission denied", "ENOENT", "EACCES")
SYSTEM_ERROR_MARKERS = ("permission denied", "command not found", "timeout")


@dataclass(frozen=True)
class ErrorEvidence:
    tool: str
    index: int
    output: Optional[str] = None
    command: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"tool": self.tool, "index": self.index, "output": self.output}
        if self.command is not None:
            out["command"] = self.command
        return out


@dataclass(frozen=True)
class ErrorPattern(PatternRecord):
    name: str
    count: int
    start_index: int
    end_index: int
    error_type: str = CONSECUTIVE_ERRORS
    error_details: Optional[str] = None
    evidence: Tuple[ErrorEvidence, ...] = ()
    tool_sequence: Optional[str] = None
    error_rate: Optional[int] = None
    error_breakdown: Dict[str, int] = field(default_factory=dict)
    error_output: Optional[str] = None
    has_significant_errors: bool = False
    significant_error_types: Tuple[str, ...] = ()


def should_count_error(op: ToolOperation, index: int, session: Session, phases: Sequence[Phase], cfg: Mapping[str, Any]) -> bool:
    """Phase-aware filter: some failures are normal for the phase they occur in."""
    phase = find_phase(phases, index)
    if phase is None:
        return True

    if phase.type == PhaseType.EXPLORATION and op.name in INVESTIGATION_TOOLS:
        explored = [o for o in phase_operations(session, phase) if o.name in INVESTIGATION_TOOLS]
        if explored:
            failures = sum(1 for o in explored if o.is_error)
            return failures / len(explored) > cfg["exploration_failure_rate"]
        return True

    if phase.type == PhaseType.TESTING and op.name == SHELL_TOOL and op.output:
        test_failure = "test" in op.output and ("failed" in op.output or "FAIL" in op.output)
        return not test_failure or output_contains(op, *SYSTEM_ERROR_MARKERS)

    return True


def _evidence(ops: Sequence[ToolOperation], limit: int, with_command: bool = False) -> Tuple[ErrorEvidence, ...]:
    return tuple(
        ErrorEvidence(
            tool=op.name,
            index=op.operation_index,
            output=excerpt(op.output, limit),
            command=(command_of(op) or "unknown") if with_command else None,
        )
        for op in ops
    )


def _error_streaks(session: Session, phases: Sequence[Phase], cfg: Mapping[str, Any]) -> Tuple[List[ErrorPattern], List[ToolOperation]]:
    streaks: List[ErrorPattern] = []
    replacement_failures: List[ToolOperation] = []
    current: Optional[List[ToolOperation]] = None

    def close(run: List[ToolOperation]) -> None:
        streaks.append(ErrorPattern(
            provenance=provenance(
                PatternType.ERROR_PATTERN,
                session.session_id,
                ConfidenceLevel.HIGH if len(run) >= 3 else ConfidenceLevel.MEDIUM,
            ),
            name=run[0].name,
            count=len(run),
            start_index=run[0].operation_index,
            end_index=run[-1].operation_index,
        ))

    for i, op in enumerate(session.tool_operations):
        if op.is_error and not should_count_error(op, i, session, phases, cfg):
            log.debug("error at %d (%s) is normal for its phase", i, op.name)
            continue

        if output_contains(op, *STRING_REPLACEMENT_MARKERS):
            replacement_failures.append(op)

        if op.is_error:
            if current and current[-1].name == op.name:
                current.append(op)
            else:
                if current:
                    close(current)
                current = [op]
        elif current:
            close(current)
            current = None

    if current:
        close(current)
    return streaks, replacement_failures


def _aggregate(
    session_id: str,
    name: str,
    error_type: str,
    details: str,
    matches: Sequence[ToolOperation],
    evidence: Tuple[ErrorEvidence, ...],
) -> ErrorPattern:
    return ErrorPattern(
        provenance=provenance(PatternType.ERROR_PATTERN, session_id, ConfidenceLevel.MEDIUM),
        name=name,
        count=len(matches),
        start_index=matches[0].operation_index,
        end_index=matches[-1].operation_index,
        error_type=error_type,
        error_details=details,
        evidence=evidence,
    )


def _is_git_error(op: ToolOperation) -> bool:
    if output_contains(op, *GIT_OUTPUT_MARKERS):
        return True
    return op.name == SHELL_TOOL and "git" in (command_of(op) or "")


def find_failure_chains(errors: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> List[List[ToolOperation]]:
    """Runs of nearby errors that hop between tools.

    An error joins the chain when it is within ``chain_gap`` operations of the
    chain's last error and comes from a different tool; a same-tool error in
    range is passed over. Chains never share errors.
    """
    chains: List[List[ToolOperation]] = []
    i = 0
    while i < len(errors):
        chain = [errors[i]]
        consumed = i
        for j in range(i + 1, len(errors)):
            gap = errors[j].operation_index - chain[-1].operation_index
            if gap > cfg["chain_gap"]:
                break
            if errors[j].name != chain[-1].name:
                chain.append(errors[j])
                consumed = j
        if len(chain) >= cfg["chain_min_errors"] and len({op.name for op in chain}) >= cfg["chain_min_tools"]:
            chains.append(chain)
            i = consumed + 1
        else:
            i += 1
    return chains


def _unique_in_order(names: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def _significant_type(op: ToolOperation) -> Optional[str]:
    if output_contains(op, "File does not exist"):
        return "file_not_found"
    if output_contains(op, "exceeds maximum"):
        return "file_too_large"
    return None


def _fold_significant(
    patterns: List[ErrorPattern],
    errors: Sequence[ToolOperation],
    session_id: str,
    limit: int,
) -> List[ErrorPattern]:
    """Attach significant errors to a covering pattern, or report them alone."""
    for op in errors:
        if not output_contains(op, *SIGNIFICANT_MARKERS):
            continue
        index = op.operation_index
        covering = next(
            (
                k for k, p in enumerate(patterns)
                if p.start_index <= index <= p.end_index and p.error_type != SIGNIFICANT_SINGLE_ERROR
            ),
            None,
        )
        if covering is None:
            patterns.append(ErrorPattern(
                provenance=provenance(PatternType.ERROR_PATTERN, session_id, ConfidenceLevel.HIGH),
                name=op.name,
                count=1,
                start_index=index,
                end_index=index,
                error_type=SIGNIFICANT_SINGLE_ERROR,
                error_details="Critical system error that may block workflow progress",
                error_output=excerpt(op.output, limit * 2),
            ))
            continue
        existing = patterns[covering]
        kind = _significant_type(op)
        patterns[covering] = dataclasses.replace(
            existing,
            has_significant_errors=True,
            significant_error_types=existing.significant_error_types + ((kind,) if kind else ()),
        )
    return patterns


def detect_error_patterns(session: Any, phases: Any = ()) -> List[ErrorPattern]:
    """All error-related patterns of one session, in detection order."""
    session = coerce_session(session)
    cfg = get_section("error_patterns")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    sid = session.session_id
    limit = cfg["output_excerpt"]
    phase_list = coerce_phases(phases, sid)

    patterns, replacement_failures = _error_streaks(session, phase_list, cfg)
    errors = [op for op in ops if op.is_error]

    if len(replacement_failures) >= cfg["string_replacement_min"]:
        patterns.append(_aggregate(
            sid, "Edit", STRING_REPLACEMENT_FAILURE,
            'Multiple Edit operations failed with "String to replace not found" errors',
            replacement_failures, _evidence(replacement_failures, limit),
        ))

    interruptions = [op for op in errors if output_contains(op, *INTERRUPTION_MARKERS)]
    if len(interruptions) >= cfg["interruption_min"]:
        patterns.append(_aggregate(
            sid, "UserInterruption", USER_INTERRUPTION,
            f"User interrupted {len(interruptions)} tool operations, suggesting workflow friction or unclear intent",
            interruptions, _evidence(interruptions, limit),
        ))

    timeouts = [op for op in errors if output_contains(op, *TIMEOUT_MARKERS)]
    if len(timeouts) >= cfg["timeout_min"]:
        patterns.append(_aggregate(
            sid, "CommandTimeout", TIMEOUT,
            f"{len(timeouts)} command timeout(s) indicating system resource or network issues",
            timeouts, _evidence(timeouts, limit),
        ))

    git_errors = [op for op in errors if op.output and _is_git_error(op)]
    if len(git_errors) >= cfg["git_error_min"]:
        patterns.append(_aggregate(
            sid, "GitOperation", GIT_ERROR,
            f"{len(git_errors)} git operation error(s) suggesting repository sync or permission issues",
            git_errors, _evidence(git_errors, limit, with_command=True),
        ))

    for chain in find_failure_chains(errors, cfg):
        tools = _unique_in_order([op.name for op in chain])
        patterns.append(ErrorPattern(
            provenance=provenance(
                PatternType.ERROR_PATTERN,
                sid,
                ConfidenceLevel.HIGH if len(chain) >= cfg["chain_high_errors"] else ConfidenceLevel.MEDIUM,
            ),
            name="MixedToolFailure",
            count=len(chain),
            start_index=chain[0].operation_index,
            end_index=chain[-1].operation_index,
            error_type=CROSS_TOOL_FAILURE,
            error_details=(
                f"{len(chain)} errors across {len(tools)} different tools ({', '.join(tools)}), "
                "suggesting systematic workflow breakdown"
            ),
            evidence=_evidence(chain, limit),
            tool_sequence=" → ".join(tools),
        ))

    rate = len(errors) / len(ops)
    if rate >= cfg["density_error_rate"] and len(errors) >= cfg["density_min_errors"]:
        percent = int(round(rate * 100))
        patterns.append(ErrorPattern(
            provenance=provenance(PatternType.ERROR_PATTERN, sid, ConfidenceLevel.HIGH),
            name="HighErrorDensity",
            count=len(errors),
            start_index=errors[0].operation_index,
            end_index=errors[-1].operation_index,
            error_type=SESSION_QUALITY,
            error_details=(
                f"High error density: {len(errors)}/{len(ops)} operations failed ({percent}%), "
                "indicating significant workflow issues"
            ),
            error_rate=percent,
            error_breakdown=dict(Counter(op.name for op in errors)),
        ))

    return _fold_significant(patterns, errors, sid, limit)
