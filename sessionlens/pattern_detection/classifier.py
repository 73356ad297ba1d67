"""Coarse struggle classification from tool output and user messages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import Session, coerce_session

COMPILATION_ISSUE = "Compilation Issue"
USER_STRUGGLE = "User Struggle"

COMPILATION_ERROR_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"error TS\d+:", re.IGNORECASE),
    re.compile(r"compilation error", re.IGNORECASE),
    re.compile(r"error:", re.IGNORECASE),
    re.compile(r"SyntaxError:", re.IGNORECASE),
    re.compile(r"ReferenceError:", re.IGNORECASE),
    re.compile(r"TypeError:", re.IGNORECASE),
)

STRUGGLE_KEYWORDS = (
    "doesn't work",
    "error",
    "problem",
    "why",
    "how",
    "what's wrong",
    "help",
    "can't",
    "unable",
)


@dataclass(frozen=True)
class StruggleClassification(PatternRecord):
    type: str
    confidence: float
    details: str


def _from_tool_output(session: Session) -> Optional[StruggleClassification]:
    for op in session.tool_operations:
        if not op.output:
            continue
        if any(pattern.search(op.output) for pattern in COMPILATION_ERROR_PATTERNS):
            return StruggleClassification(
                provenance=provenance(PatternType.STRUGGLE_CLASSIFICATION, session.session_id, ConfidenceLevel.MEDIUM),
                type=COMPILATION_ISSUE,
                confidence=0.7,
                details=op.output[:100] + "...",
            )
    return None


def _from_conversation(session: Session) -> Optional[StruggleClassification]:
    for message in session.conversation:
        if message.role != "user":
            continue
        text = message.content.lower()
        for keyword in STRUGGLE_KEYWORDS:
            if keyword in text:
                return StruggleClassification(
                    provenance=provenance(PatternType.STRUGGLE_CLASSIFICATION, session.session_id, ConfidenceLevel.LOW),
                    type=USER_STRUGGLE,
                    confidence=0.6,
                    details=f"User expressed struggle with keyword: '{keyword}'",
                )
    return None


def classify_struggle(session: Any) -> List[StruggleClassification]:
    """Label the session's struggle, tool evidence first, then the user's words."""
    session = coerce_session(session)
    if session is None:
        return []
    found = _from_tool_output(session) or _from_conversation(session)
    return [found] if found else []
