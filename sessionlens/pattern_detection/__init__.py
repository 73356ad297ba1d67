"""
SessionLens Pattern Detection Layer

Detects behavioral patterns in recorded coding-assistant sessions:
- Phases: exploration / implementation / testing spans
- Loops: repeated calls, repeated sequences, plan-file edit churn
- Stagnation and redundant sequences
- Ratio detectors: reading spirals, shotgun debugging, context switching,
  no progress, problematic long sessions
- Error patterns and bash error classification
- Struggle trend across long sessions
- Success patterns: problem solving, collaboration, productive sessions

Every detector is a pure function of a session (plus phases, for the
phase-aware ones) and returns a list of frozen PatternRecord subclasses.
The registry runs them by name.
"""

from .base import ConfidenceLevel, PatternRecord, PatternType, PhaseType, Provenance
from .models import (
    ConversationMessage,
    FileInput,
    GenericInput,
    SearchInput,
    Session,
    ShellInput,
    TodoInput,
    ToolOperation,
    coerce_session,
)
from .phases import Phase, detect_session_phases
from .loops import (
    AdvancedLoop,
    PlanEditingLoop,
    SimpleLoop,
    detect_advanced_loops,
    detect_plan_editing_loops,
    detect_simple_loops,
)
from .stagnation import StagnationPattern, detect_stagnation
from .redundancy import RedundantSequence, detect_redundant_sequences
from .ratios import (
    ContextSwitching,
    NoProgress,
    ReadingSpiral,
    ShotgunDebugging,
    detect_context_switching,
    detect_no_progress_sessions,
    detect_reading_spirals,
    detect_shotgun_debugging,
)
from .long_sessions import LongSession, detect_long_sessions
from .errors import ErrorPattern, detect_error_patterns
from .bash_errors import BashErrorClassification, BashErrorPattern, classify_bash_error, detect_bash_error_patterns
from .trend import ChunkMetrics, TrendReport, analyze_struggle_trend
from .success import (
    CollaborationEffectiveness,
    ProblemSolvingSuccess,
    ProductiveSession,
    detect_collaboration_effectiveness,
    detect_problem_solving_success,
    detect_productive_sessions,
)
from .classifier import StruggleClassification, classify_struggle
from .thresholds import get_section, reload_thresholds
from .registry import (
    DETECTORS,
    DetectorRun,
    DetectorSpec,
    SessionAnalysis,
    analyze_session,
    analyze_sessions,
    detector_names,
    get_detector,
    run_detector,
)

__all__ = [
    "ConfidenceLevel",
    "PatternRecord",
    "PatternType",
    "PhaseType",
    "Provenance",
    "ConversationMessage",
    "FileInput",
    "GenericInput",
    "SearchInput",
    "Session",
    "ShellInput",
    "TodoInput",
    "ToolOperation",
    "coerce_session",
    "Phase",
    "detect_session_phases",
    "AdvancedLoop",
    "PlanEditingLoop",
    "SimpleLoop",
    "detect_advanced_loops",
    "detect_plan_editing_loops",
    "detect_simple_loops",
    "StagnationPattern",
    "detect_stagnation",
    "RedundantSequence",
    "detect_redundant_sequences",
    "ContextSwitching",
    "NoProgress",
    "ReadingSpiral",
    "ShotgunDebugging",
    "detect_context_switching",
    "detect_no_progress_sessions",
    "detect_reading_spirals",
    "detect_shotgun_debugging",
    "LongSession",
    "detect_long_sessions",
    "ErrorPattern",
    "detect_error_patterns",
    "BashErrorClassification",
    "BashErrorPattern",
    "classify_bash_error",
    "detect_bash_error_patterns",
    "ChunkMetrics",
    "TrendReport",
    "analyze_struggle_trend",
    "CollaborationEffectiveness",
    "ProblemSolvingSuccess",
    "ProductiveSession",
    "detect_collaboration_effectiveness",
    "detect_problem_solving_success",
    "detect_productive_sessions",
    "StruggleClassification",
    "classify_struggle",
    "get_section",
    "reload_thresholds",
    "DETECTORS",
    "DetectorRun",
    "DetectorSpec",
    "SessionAnalysis",
    "analyze_session",
    "analyze_sessions",
    "detector_names",
    "get_detector",
    "run_detector",
]
