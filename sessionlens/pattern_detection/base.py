"""
Base types for the pattern detection layer.

Every detector returns a list of PatternRecord subclasses. Records are frozen,
carry a Provenance, and serialize to plain JSON types via to_dict().
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class PatternType(str, Enum):
    """Types of patterns we can detect."""
    SESSION_PHASE = "session_phase"
    SIMPLE_LOOP = "simple_loop"
    ADVANCED_LOOP = "advanced_loop"
    PLAN_EDITING_LOOP = "plan_editing_loop"
    STAGNATION = "stagnation"
    REDUNDANT_SEQUENCE = "redundant_sequence"
    READING_SPIRAL = "reading_spiral"
    SHOTGUN_DEBUGGING = "shotgun_debugging"
    CONTEXT_SWITCHING = "context_switching"
    NO_PROGRESS = "no_progress"
    LONG_SESSION = "problematic_long_session"
    ERROR_PATTERN = "error_pattern"
    ENVIRONMENT_SETUP_ISSUES = "environment_setup_issues"
    DEVELOPMENT_WORKFLOW_ERRORS = "development_workflow_errors"
    STRUGGLE_TREND = "struggle_trend"
    PROBLEM_SOLVING_SUCCESS = "problem_solving_success"
    COLLABORATION_EFFECTIVENESS = "ai_collaboration_effectiveness"
    PRODUCTIVE_SESSION = "productive_session"
    STRUGGLE_CLASSIFICATION = "struggle_classification"


class PhaseType(str, Enum):
    EXPLORATION = "exploration"
    IMPLEMENTATION = "implementation"
    TESTING = "testing"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_jsonable(value: Any) -> Any:
    """Convert records, enums and containers into plain JSON types."""
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, float):
        return round(value, 6)
    return value


@dataclass(frozen=True)
class Provenance:
    """Where a record came from. The timestamp is ignored by equality."""
    pattern_type: PatternType
    session_id: str
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM
    detection_timestamp: str = field(default_factory=utc_timestamp, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_type": self.pattern_type.value,
            "detection_timestamp": self.detection_timestamp,
            "session_id": self.session_id,
            "confidence_level": self.confidence_level.value,
        }


@dataclass(frozen=True)
class PatternRecord:
    """Common base of everything a detector emits."""
    provenance: Provenance

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in dataclasses.fields(self):
            if f.name == "provenance":
                continue
            out[f.name] = to_jsonable(getattr(self, f.name))
        out["provenance"] = self.provenance.to_dict()
        return out

    @property
    def pattern_type(self) -> PatternType:
        return self.provenance.pattern_type


def confidence_level(score: float, high: float = 0.7, medium: float = 0.4) -> ConfidenceLevel:
    if score >= high:
        return ConfidenceLevel.HIGH
    if score >= medium:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def provenance(
    pattern_type: PatternType,
    session_id: str,
    level: ConfidenceLevel = ConfidenceLevel.MEDIUM,
) -> Provenance:
    return Provenance(pattern_type=pattern_type, session_id=session_id, confidence_level=level)
