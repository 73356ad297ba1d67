"""
Redundant sequence detector.

Pattern A (unnecessary_re_read): Read -> Edit/MultiEdit -> Read of one file
where the edit changed nothing. Pattern B (duplicate_bash_command): the same
shell command run twice in a row after a successful first run. Git workflow
commands and high-confidence exploration phases are exempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import FileInput, ToolOperation, bash_id_of, coerce_session, command_of, file_path_of
from .phases import Phase, coerce_phases, in_confident_exploration
from .signals import EDIT_TOOLS, READ_TOOLS, SHELL_TOOL
from .thresholds import get_section

UNNECESSARY_RE_READ = "unnecessary_re_read"
DUPLICATE_BASH_COMMAND = "duplicate_bash_command"


@dataclass(frozen=True)
class RedundantSequence(PatternRecord):
    type: str
    indices: Tuple[int, ...]
    tools: Tuple[str, ...]
    start_index: int
    end_index: int
    file_pattern: Optional[str] = None
    command: Optional[str] = None


def _is_no_op_edit(edit: ToolOperation) -> bool:
    if not isinstance(edit.input, FileInput):
        return False
    old, new = edit.input.old_string, edit.input.new_string
    return old is not None and new is not None and old == new


def is_verification_read(edit: ToolOperation) -> bool:
    """A re-read after a real edit confirms the change (or checks a failure)."""
    if _is_no_op_edit(edit):
        return False
    if edit.is_success:
        return True
    return edit.is_error or "error" in (edit.output or "")


def _is_monitoring_call(op: ToolOperation) -> bool:
    return bool(bash_id_of(op)) and not command_of(op)


def is_git_workflow(first: ToolOperation, second: ToolOperation, allowed: Sequence[str]) -> bool:
    cmd1, cmd2 = command_of(first), command_of(second)
    if cmd1 and cmd2:
        if cmd1.startswith("git ") and cmd2.startswith("git "):
            if cmd1 != cmd2:
                return True
            return cmd1 in allowed
        return False

    if first.is_success and second.is_success:
        # Monitoring calls (an output handle, no command) stay subject to detection.
        if _is_monitoring_call(first) and _is_monitoring_call(second):
            return False
        return True
    return False


def _re_reads(ops: Sequence[ToolOperation], phases: Sequence[Phase], min_conf: float, session_id: str) -> List[RedundantSequence]:
    found = []
    for i in range(len(ops) - 2):
        first, edit, last = ops[i], ops[i + 1], ops[i + 2]
        if first.name not in READ_TOOLS or edit.name not in EDIT_TOOLS or last.name not in READ_TOOLS:
            continue
        path = file_path_of(first)
        if not path or file_path_of(edit) != path or file_path_of(last) != path:
            continue
        if is_verification_read(edit) or in_confident_exploration(phases, i, i + 2, min_conf):
            continue
        found.append(RedundantSequence(
            provenance=provenance(PatternType.REDUNDANT_SEQUENCE, session_id, ConfidenceLevel.HIGH),
            type=UNNECESSARY_RE_READ,
            indices=(i, i + 1, i + 2),
            tools=(first.name, edit.name, last.name),
            start_index=i,
            end_index=i + 2,
            file_pattern=path,
        ))
    return found


def _duplicate_commands(
    ops: Sequence[ToolOperation],
    phases: Sequence[Phase],
    min_conf: float,
    allowed: Sequence[str],
    session_id: str,
) -> List[RedundantSequence]:
    found = []
    for i in range(len(ops) - 1):
        first, second = ops[i], ops[i + 1]
        if first.name != SHELL_TOOL or second.name != SHELL_TOOL:
            continue
        if command_of(first) != command_of(second) or first.is_error:
            continue
        if is_git_workflow(first, second, allowed) or in_confident_exploration(phases, i, i + 1, min_conf):
            continue
        found.append(RedundantSequence(
            provenance=provenance(PatternType.REDUNDANT_SEQUENCE, session_id, ConfidenceLevel.MEDIUM),
            type=DUPLICATE_BASH_COMMAND,
            indices=(i, i + 1),
            tools=(first.name, second.name),
            start_index=i,
            end_index=i + 1,
            command=command_of(first),
        ))
    return found


def detect_redundant_sequences(session: Any, phases: Any = ()) -> List[RedundantSequence]:
    """Re-reads after no-op edits and duplicate shell commands."""
    session = coerce_session(session)
    cfg = get_section("redundant_sequences")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return []

    ops = session.tool_operations
    phase_list = coerce_phases(phases, session.session_id)
    min_conf = cfg["exploration_confidence"]
    allowed = tuple(cfg["git_workflow_commands"])
    return (
        _re_reads(ops, phase_list, min_conf, session.session_id)
        + _duplicate_commands(ops, phase_list, min_conf, allowed, session.session_id)
    )
