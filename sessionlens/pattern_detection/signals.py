"""
Shared behavioral signals: tool families, forward-progress markers and the
free-text rule tables used to infer what an edit did.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import ToolOperation, command_of

READ_TOOLS = frozenset({"Read"})
INVESTIGATION_TOOLS = frozenset({"Read", "Grep", "Glob"})
SEARCH_ONLY_TOOLS = frozenset({"Grep", "Glob"})
MUTATION_TOOLS = frozenset({"Edit", "Write", "MultiEdit"})
EDIT_TOOLS = frozenset({"Edit", "MultiEdit"})
ACTION_TOOLS = frozenset({"Edit", "Write", "MultiEdit", "NotebookEdit"})
FILE_OP_TOOLS = frozenset({"Read", "Edit", "Write", "MultiEdit"})
PROGRESS_TRACKING_TOOLS = frozenset({"TodoWrite"})
SHELL_TOOL = "Bash"

PROGRESS_COMMANDS = ("git commit", "git push", "npm run build")

# Ordered: first match wins.
SEMANTIC_ACTION_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"added|created|implementing", re.IGNORECASE), "add"),
    (re.compile(r"updated|modified|changed", re.IGNORECASE), "update"),
    (re.compile(r"function|method", re.IGNORECASE), "function"),
    (re.compile(r"UI|interface|component", re.IGNORECASE), "ui"),
    (re.compile(r"initialization|init|setup", re.IGNORECASE), "init"),
    (re.compile(r"alert|notification", re.IGNORECASE), "feature"),
)

FILENAME_RULES: Tuple[re.Pattern, ...] = (
    re.compile(r"to (\w+\.\w+)", re.IGNORECASE),
    re.compile(r"in (\w+\.\w+)", re.IGNORECASE),
    re.compile(r"(\w+\.\w+)", re.IGNORECASE),
)


def is_progress_operation(op: ToolOperation, extra_commands: Sequence[str] = ()) -> bool:
    """A successful commit/push/build, or any successful file mutation."""
    if not op.is_success:
        return False
    if op.name in MUTATION_TOOLS:
        return True
    if op.name == SHELL_TOOL:
        command = command_of(op) or ""
        return any(marker in command for marker in (*PROGRESS_COMMANDS, *extra_commands))
    return False


def shows_session_progress(operations: Iterable[ToolOperation], extra_commands: Sequence[str] = ()) -> bool:
    return any(is_progress_operation(op, extra_commands) for op in operations)


def infer_semantic_action(output: Optional[str]) -> Optional[str]:
    """Map edit output text to an action label using SEMANTIC_ACTION_RULES."""
    if not output:
        return None
    for pattern, action in SEMANTIC_ACTION_RULES:
        if pattern.search(output):
            return action
    return None


def filename_from_output(output: Optional[str]) -> Optional[str]:
    if not output:
        return None
    for pattern in FILENAME_RULES:
        match = pattern.search(output)
        if match and match.group(1):
            return match.group(1)
    return None


def error_rate(operations: Sequence[ToolOperation]) -> float:
    if not operations:
        return 0.0
    return sum(1 for op in operations if op.is_error) / len(operations)


def error_indices(operations: Sequence[ToolOperation]) -> List[int]:
    return [i for i, op in enumerate(operations) if op.is_error]


def output_contains(op: ToolOperation, *needles: str) -> bool:
    if not op.output:
        return False
    return any(needle in op.output for needle in needles)


def excerpt(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    return text[:limit]


def parent_dir(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def base_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]
