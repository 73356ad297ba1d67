"""
Detector registry.

DETECTORS is the ordered list of everything that can run against a session.
The CLI and analyze_session() both go through it, so adding a detector means
adding one DetectorSpec here.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .bash_errors import detect_bash_error_patterns
from .base import PatternRecord, to_jsonable
from .classifier import classify_struggle
from .errors import detect_error_patterns
from .long_sessions import detect_long_sessions
from .loops import detect_advanced_loops, detect_plan_editing_loops, detect_simple_loops
from .models import coerce_session
from .phases import Phase, detect_session_phases
from .ratios import (
    detect_context_switching,
    detect_no_progress_sessions,
    detect_reading_spirals,
    detect_shotgun_debugging,
)
from .redundancy import detect_redundant_sequences
from .stagnation import detect_stagnation
from .success import (
    detect_collaboration_effectiveness,
    detect_problem_solving_success,
    detect_productive_sessions,
)
from .thresholds import get_section
from .trend import TrendReport, analyze_struggle_trend

log = logging.getLogger("sessionlens.registry")

STRUGGLE = "struggle"
SUCCESS = "success"
PHASE = "phase"
TREND = "trend"
CLASSIFICATION = "classification"


def _trend_as_list(session: Any) -> List[TrendReport]:
    report = analyze_struggle_trend(session)
    return [report] if report is not None else []


@dataclass(frozen=True)
class DetectorSpec:
    name: str
    func: Callable[..., List[PatternRecord]]
    category: str = STRUGGLE
    phase_aware: bool = False
    section: Optional[str] = None
    default_min_operations: int = 1

    @property
    def min_operations(self) -> int:
        """Smallest session the detector looks at, from the resolved tuneables."""
        if self.section is None:
            return self.default_min_operations
        return int(get_section(self.section).get("min_operations", self.default_min_operations))

    def run(self, session: Any, phases: Sequence[Phase] = ()) -> List[PatternRecord]:
        if self.phase_aware:
            return list(self.func(session, phases))
        return list(self.func(session))


DETECTORS: Tuple[DetectorSpec, ...] = (
    DetectorSpec("session_phases", detect_session_phases, PHASE),
    DetectorSpec("simple_loops", detect_simple_loops, section="simple_loops", default_min_operations=2),
    DetectorSpec("advanced_loops", detect_advanced_loops, section="advanced_loops", default_min_operations=4),
    DetectorSpec("plan_editing_loops", detect_plan_editing_loops, section="plan_editing_loops", default_min_operations=2),
    DetectorSpec("stagnation", detect_stagnation, section="stagnation", default_min_operations=2),
    DetectorSpec(
        "redundant_sequences", detect_redundant_sequences,
        phase_aware=True, section="redundant_sequences", default_min_operations=3,
    ),
    DetectorSpec("reading_spirals", detect_reading_spirals, section="reading_spirals", default_min_operations=5),
    DetectorSpec("shotgun_debugging", detect_shotgun_debugging, section="shotgun_debugging", default_min_operations=15),
    DetectorSpec("context_switching", detect_context_switching, section="context_switching", default_min_operations=10),
    DetectorSpec("no_progress", detect_no_progress_sessions, section="no_progress", default_min_operations=10),
    DetectorSpec("long_sessions", detect_long_sessions),
    DetectorSpec(
        "error_patterns", detect_error_patterns,
        phase_aware=True, section="error_patterns", default_min_operations=2,
    ),
    DetectorSpec("bash_error_patterns", detect_bash_error_patterns),
    DetectorSpec("struggle_trend", _trend_as_list, TREND, section="struggle_trend", default_min_operations=100),
    DetectorSpec(
        "problem_solving_success", detect_problem_solving_success, SUCCESS,
        section="problem_solving", default_min_operations=4,
    ),
    DetectorSpec(
        "collaboration_effectiveness", detect_collaboration_effectiveness, SUCCESS,
        section="collaboration", default_min_operations=3,
    ),
    DetectorSpec(
        "productive_sessions", detect_productive_sessions, SUCCESS,
        section="productive_sessions", default_min_operations=4,
    ),
    DetectorSpec("struggle_classification", classify_struggle, CLASSIFICATION, default_min_operations=0),
)

_BY_NAME: Dict[str, DetectorSpec] = {spec.name: spec for spec in DETECTORS}


def detector_names() -> List[str]:
    return [spec.name for spec in DETECTORS]


def get_detector(name: str) -> DetectorSpec:
    """Look up a detector; unknown names raise KeyError."""
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"unknown detector: {name}") from None


@dataclass(frozen=True)
class DetectorRun:
    name: str
    patterns: List[PatternRecord]
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "patterns": [p.to_dict() for p in self.patterns],
            "duration_ms": round(self.duration_ms, 3),
        }


def run_detector(name: str, session: Any, phases: Optional[Sequence[Phase]] = None) -> DetectorRun:
    """Run one detector by name and time it.

    Phase-aware detectors get the classifier's phases when none are passed.
    """
    spec = get_detector(name)
    coerced = coerce_session(session)
    if spec.phase_aware and phases is None:
        phases = detect_session_phases(coerced)
    started = time.perf_counter()
    patterns = spec.run(coerced, phases or ())
    elapsed = (time.perf_counter() - started) * 1000.0
    log.debug("%s: %d pattern(s) in %.2fms", name, len(patterns), elapsed)
    return DetectorRun(name=name, patterns=patterns, duration_ms=elapsed)


@dataclass(frozen=True)
class SessionAnalysis:
    session_id: str
    phases: List[Phase] = field(default_factory=list)
    patterns: Dict[str, List[PatternRecord]] = field(default_factory=dict)
    trend: Optional[TrendReport] = None

    @property
    def pattern_count(self) -> int:
        return sum(len(found) for found in self.patterns.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "phases": [p.to_dict() for p in self.phases],
            "patterns": {name: [p.to_dict() for p in found] for name, found in self.patterns.items()},
            "trend": to_jsonable(self.trend) if self.trend is not None else None,
        }


def analyze_session(session: Any) -> SessionAnalysis:
    """Phases first, then every struggle/success detector, then the trend."""
    coerced = coerce_session(session)
    if coerced is None:
        return SessionAnalysis(session_id="")

    phases = detect_session_phases(coerced)
    patterns: Dict[str, List[PatternRecord]] = {}
    for spec in DETECTORS:
        if spec.category in (PHASE, TREND):
            continue
        patterns[spec.name] = spec.run(coerced, phases)
    return SessionAnalysis(
        session_id=coerced.session_id,
        phases=phases,
        patterns=patterns,
        trend=analyze_struggle_trend(coerced),
    )


def analyze_sessions(sessions: Iterable[Any], max_workers: Optional[int] = None) -> List[SessionAnalysis]:
    """Analyze many sessions on a thread pool; results keep input order."""
    batch = list(sessions)
    if not batch:
        return []
    if max_workers is None:
        max_workers = get_section("analysis")["max_workers"]
    workers = max(1, min(int(max_workers), len(batch)))
    log.debug("analyzing %d session(s) with %d worker(s)", len(batch), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(analyze_session, batch))
