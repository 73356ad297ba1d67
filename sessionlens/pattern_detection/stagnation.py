"""
Stagnation detector: adjacent identical operations with no forward progress.

Identity is tool-aware. Shell, search and read pairs with neither input nor
output captured on either side are treated as distinct, since ingestion drops
command text for many legitimate git and search calls. Any pair with a
captured input compares normally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import SearchInput, ToolInput, ToolOperation, coerce_session, command_of, file_path_of
from .signals import MUTATION_TOOLS, PROGRESS_TRACKING_TOOLS, READ_TOOLS, SEARCH_ONLY_TOOLS, SHELL_TOOL, shows_session_progress
from .thresholds import get_section

log = logging.getLogger("sessionlens.stagnation")

UNCAPTURED_PAIR_TOOLS = frozenset({SHELL_TOOL}) | SEARCH_ONLY_TOOLS | READ_TOOLS


@dataclass(frozen=True)
class StagnationPattern(PatternRecord):
    name: str
    input: Optional[ToolInput]
    output: Optional[str]
    start_index: int
    end_index: int
    operation_index: int


def _uncaptured_pair(a: ToolOperation, b: ToolOperation) -> bool:
    if a.output is not None or b.output is not None:
        return False
    return a.input is None and b.input is None


def operations_identical(a: ToolOperation, b: ToolOperation) -> bool:
    """Tool-specific identity used for stagnation, stricter than deep equality."""
    if a.name != b.name:
        return False

    if a.name in UNCAPTURED_PAIR_TOOLS and _uncaptured_pair(a, b):
        return False

    if a.name == SHELL_TOOL:
        cmd_a, cmd_b = command_of(a), command_of(b)
        if cmd_a and cmd_b:
            return cmd_a == cmd_b

    if a.name in SEARCH_ONLY_TOOLS and isinstance(a.input, SearchInput) and isinstance(b.input, SearchInput):
        if (a.input.pattern, a.input.glob, a.input.path) != (b.input.pattern, b.input.glob, b.input.path):
            return False

    return a.input == b.input and a.output == b.output


def _is_productive_repeat(index: int, ops: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> bool:
    op = ops[index]
    total = len(ops)

    if op.name in MUTATION_TOOLS and op.is_success:
        return True

    if op.name in PROGRESS_TRACKING_TOOLS:
        return True

    path = file_path_of(op)
    if op.name in READ_TOOLS and path:
        # index - 2 is the op before the pair's first read.
        neighbours = [ops[j] for j in (index - 2, index + 1) if 0 <= j < total]
        if any(n.name in MUTATION_TOOLS and file_path_of(n) == path for n in neighbours):
            return True

    if op.name in READ_TOOLS and index < total * cfg["exploration_fraction"]:
        return True

    if op.output and "error" not in op.output and "Error" not in op.output:
        window = cfg["nearby_window"]
        nearby = ops[max(0, index - window):index + window + 1]
        if any(n.name == op.name and n.is_success and n.input != op.input for n in nearby):
            return True

    if shows_session_progress(ops):
        return index < total * cfg["progress_leniency_fraction"]

    return False


def detect_stagnation(session: Any) -> List[StagnationPattern]:
    """Adjacent identical operations that are not explained by productive work."""
    session = coerce_session(session)
    cfg = get_section("stagnation")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    patterns: List[StagnationPattern] = []
    for i in range(1, len(ops)):
        if not operations_identical(ops[i - 1], ops[i]):
            continue
        if _is_productive_repeat(i, ops, cfg):
            log.debug("repeat of %s at %d suppressed as productive", ops[i].name, i)
            continue
        current = ops[i]
        patterns.append(StagnationPattern(
            provenance=provenance(PatternType.STAGNATION, session.session_id, ConfidenceLevel.MEDIUM),
            name=current.name,
            input=current.input,
            output=current.output,
            start_index=i - 1,
            end_index=i,
            operation_index=i,
        ))
    return patterns
