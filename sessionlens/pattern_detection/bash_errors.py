"""
Bash error classifier.

Sorts failed shell commands into expected failures, environment problems
(blocking setup issues) and development workflow errors, then aggregates the
classifications into session-level patterns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import ToolOperation, coerce_session, command_of
from .signals import SHELL_TOOL
from .thresholds import get_section

EXPECTED = "expected"
ENVIRONMENT = "environment"
WORKFLOW = "workflow"
UNCLASSIFIED = "unclassified"
UNKNOWN = "unknown"

SETUP_COMMANDS = ("install", "setup", "init", "pull", "push", "clone", "curl", "pip", "brew", "apt", "npx")
DEPENDENCY_COMMANDS = ("install", "setup", "init")
SERVICE_COMMANDS = ("docker", "compose", "service", "systemctl", "psql", "mysql", "redis", "mongo", "serve", "start")
TEST_COMMANDS = ("test", "spec", "jest", "mocha", "pytest", "cargo test")
BUILD_COMMANDS = ("build", "compile", "make", "tsc", "cargo build")
RUN_COMMANDS = ("start", "run", "node", "python", "java")

_MISSING_COMMAND = (
    re.compile(r"bash: ([^:]+): command not found"),
    re.compile(r"([^:]+): command not found"),
)


def _has(text: str, markers: Sequence[str]) -> bool:
    return any(marker in text for marker in markers)


def _is_expected(command: str, output: str) -> bool:
    return (
        "experiment" in command
        or ("curl" in command and "404" in output)
        or _has(output, ("as expected", "expected during", "intentional"))
        or ("test" in command and _has(output, ("failed as expected", "tdd")))
    )


def _is_command_not_found(command: str, output: str) -> bool:
    return _has(command, SETUP_COMMANDS) and _has(output, (
        "command not found",
        "not found",
        "is not recognized as an internal or external command",
    ))


def _is_setup_timeout(command: str, output: str) -> bool:
    return _has(command, SETUP_COMMANDS) and _has(output, ("timeout", "timed out", "no response"))


def _is_missing_dependency(command: str, output: str) -> bool:
    return _has(command, DEPENDENCY_COMMANDS) and _has(output, (
        "cannot find module",
        "no such file or directory",
        "missing dependency",
        "package not found",
    ))


def _is_service_unavailable(command: str, output: str) -> bool:
    return _has(command, SERVICE_COMMANDS + SETUP_COMMANDS) and _has(output, (
        "cannot connect to",
        "connection refused",
        "service unavailable",
        "docker daemon",
        "database connection failed",
    ))


def _is_test_failure(command: str, output: str) -> bool:
    return _has(command, TEST_COMMANDS) and _has(output, ("failing", "failed", "error", "assertion"))


def _is_compilation_error(command: str, output: str) -> bool:
    return _has(command, BUILD_COMMANDS) and _has(output, (
        "compilation",
        "compile error",
        "syntax error",
        "type error",
        "ts2",
    ))


def _is_runtime_exception(command: str, output: str) -> bool:
    return _has(command, RUN_COMMANDS) and _has(output, (
        "exception",
        "error:",
        "typeerror",
        "referenceerror",
        "cannot read property",
        "cannot find module",
    ))


def missing_command(output: str) -> str:
    for pattern in _MISSING_COMMAND:
        match = pattern.search(output)
        if match:
            return match.group(1)
    return "unknown command"


@dataclass(frozen=True)
class BashErrorRule:
    category: str
    type: str
    matches: Callable[[str, str], bool]
    suggestion: str
    actionable: bool = True


# Ordered: first match wins.
BASH_ERROR_RULES: Tuple[BashErrorRule, ...] = (
    BashErrorRule(EXPECTED, "expected_failure", _is_expected,
                  "This appears to be an expected failure during development", actionable=False),
    BashErrorRule(ENVIRONMENT, "command_not_found", _is_command_not_found, "install missing command: {missing}"),
    BashErrorRule(ENVIRONMENT, "timeout_during_setup", _is_setup_timeout,
                  "Check network connectivity or increase timeout"),
    BashErrorRule(ENVIRONMENT, "missing_dependencies", _is_missing_dependency,
                  "install missing dependencies or check system requirements"),
    BashErrorRule(ENVIRONMENT, "service_unavailable", _is_service_unavailable,
                  "Start required services (Docker, database, etc.)"),
    BashErrorRule(WORKFLOW, "test_failures", _is_test_failure, "Fix failing tests or update test expectations"),
    BashErrorRule(WORKFLOW, "compilation_errors", _is_compilation_error, "Fix compilation errors in source code"),
    BashErrorRule(WORKFLOW, "runtime_exceptions", _is_runtime_exception,
                  "Debug runtime error and fix application logic"),
)


@dataclass(frozen=True)
class BashErrorClassification:
    category: str
    type: str
    actionable: bool = False
    suggestion: Optional[str] = None

    def to_dict(self):
        return {
            "category": self.category,
            "type": self.type,
            "actionable": self.actionable,
            "suggestion": self.suggestion,
        }


NOT_BASH_ERROR = BashErrorClassification(category=UNKNOWN, type="not_bash_error")


def classify_bash_error(op: Optional[ToolOperation]) -> BashErrorClassification:
    """Classify one failed shell command with BASH_ERROR_RULES."""
    if op is None or op.name != SHELL_TOOL or not op.is_error:
        return NOT_BASH_ERROR

    command = (command_of(op) or "").lower()
    output = (op.output or "").lower()
    for rule in BASH_ERROR_RULES:
        if rule.matches(command, output):
            suggestion = rule.suggestion
            if "{missing}" in suggestion:
                suggestion = suggestion.format(missing=missing_command(output))
            return BashErrorClassification(rule.category, rule.type, rule.actionable, suggestion)
    return BashErrorClassification(UNCLASSIFIED, "unclassified_error", True, "Review error output and fix underlying issue")


@dataclass(frozen=True)
class BashErrorPattern(PatternRecord):
    type: str
    error_count: int
    error_types: Tuple[str, ...]
    description: str
    suggestion: str
    has_resolution: Optional[bool] = None


def _unique_types(classifications: Sequence[BashErrorClassification]) -> Tuple[str, ...]:
    seen: List[str] = []
    for item in classifications:
        if item.type not in seen:
            seen.append(item.type)
    return tuple(seen)


def has_workflow_resolution(ops: Sequence[ToolOperation]) -> bool:
    """A successful shell run reporting a pass after the last shell failure."""
    last_error = max((op.operation_index for op in ops if op.name == SHELL_TOOL and op.is_error), default=None)
    if last_error is None:
        return False
    return any(
        op.name == SHELL_TOOL and op.is_success and op.output and ("passed" in op.output or "success" in op.output)
        for op in ops[last_error + 1:]
    )


def detect_bash_error_patterns(session: Any) -> List[BashErrorPattern]:
    session = coerce_session(session)
    if session is None or not session.tool_operations:
        return []
    cfg = get_section("bash_errors")

    ops = session.tool_operations
    classified = [classify_bash_error(op) for op in ops if op.name == SHELL_TOOL and op.is_error]
    if not classified:
        return []

    results: List[BashErrorPattern] = []
    environment = [c for c in classified if c.category == ENVIRONMENT]
    if len(environment) >= cfg["environment_min"]:
        results.append(BashErrorPattern(
            provenance=provenance(
                PatternType.ENVIRONMENT_SETUP_ISSUES,
                session.session_id,
                ConfidenceLevel.HIGH if len(environment) > cfg["high_environment_count"] else ConfidenceLevel.MEDIUM,
            ),
            type="environment_setup_issues",
            error_count=len(environment),
            error_types=_unique_types(environment),
            description="Multiple environment setup issues detected",
            suggestion="Focus on environment setup before development work",
        ))

    workflow = [c for c in classified if c.category == WORKFLOW]
    if len(workflow) >= cfg["workflow_min"]:
        resolved = has_workflow_resolution(ops)
        results.append(BashErrorPattern(
            provenance=provenance(
                PatternType.DEVELOPMENT_WORKFLOW_ERRORS,
                session.session_id,
                ConfidenceLevel.LOW if resolved else ConfidenceLevel.MEDIUM,
            ),
            type="development_workflow_errors",
            error_count=len(workflow),
            error_types=_unique_types(workflow),
            description="Development errors encountered but resolved" if resolved else "Development errors need attention",
            suggestion="Good error resolution pattern" if resolved else "Focus on resolving workflow errors",
            has_resolution=resolved,
        ))
    return results
