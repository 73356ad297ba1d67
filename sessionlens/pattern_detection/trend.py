"""Struggle trend across a long session: is the work getting worse or better?"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .base import ConfidenceLevel, PatternRecord, PatternType, provenance
from .models import ToolOperation, coerce_session
from .signals import error_rate
from .thresholds import get_section

DEGRADING = "degrading"
IMPROVING = "improving"
STEADY = "steady"
TOO_SHORT = "too_short"


@dataclass(frozen=True)
class ChunkMetrics:
    chunk_index: int
    operations: int
    error_rate: float
    switch_rate: float
    tool_variety: int
    struggle_score: float

    def to_dict(self):
        return {
            "chunk_index": self.chunk_index,
            "operations": self.operations,
            "error_rate": round(self.error_rate, 6),
            "switch_rate": round(self.switch_rate, 6),
            "tool_variety": self.tool_variety,
            "struggle_score": round(self.struggle_score, 6),
        }


@dataclass(frozen=True)
class TrendReport(PatternRecord):
    trend: str
    chunks: Tuple[ChunkMetrics, ...]
    total_operations: int
    avg_first_third: Optional[float] = None
    avg_last_third: Optional[float] = None
    change_score: Optional[float] = None


def chunk_metrics(index: int, chunk: Sequence[ToolOperation], cfg: Mapping[str, Any]) -> ChunkMetrics:
    switches = sum(1 for prev, curr in zip(chunk, chunk[1:]) if prev.name != curr.name)
    switch_rate = switches / len(chunk)
    variety = len({op.name for op in chunk})
    rate = error_rate(chunk)
    penalty = cfg["variety_penalty"] if variety > cfg["variety_limit"] else 0.0
    return ChunkMetrics(
        chunk_index=index,
        operations=len(chunk),
        error_rate=rate,
        switch_rate=switch_rate,
        tool_variety=variety,
        struggle_score=rate * cfg["error_weight"] + switch_rate * cfg["switch_weight"] + penalty,
    )


def classify_trend(first: float, last: float, cfg: Mapping[str, Any]) -> str:
    # The strict comparisons keep an all-zero session steady.
    if last >= first * cfg["degrading_factor"] and last > first:
        return DEGRADING
    if last <= first * cfg["improving_factor"] and last < first:
        return IMPROVING
    return STEADY


def analyze_struggle_trend(session: Any) -> Optional[TrendReport]:
    """Compare struggle scores of the first and last third of a session.

    Returns None when the session is too short to chunk at all.
    """
    session = coerce_session(session)
    cfg = get_section("struggle_trend")
    if session is None or len(session.tool_operations) < cfg["min_operations"]:
        return None

    ops = session.tool_operations
    size = cfg["chunk_size"]
    chunks = tuple(chunk_metrics(n, ops[i:i + size], cfg) for n, i in enumerate(range(0, len(ops), size)))

    if len(chunks) < cfg["min_chunks"]:
        return TrendReport(
            provenance=provenance(PatternType.STRUGGLE_TREND, session.session_id, ConfidenceLevel.LOW),
            trend=TOO_SHORT,
            chunks=chunks,
            total_operations=len(ops),
        )

    third = len(chunks) // 3
    first = sum(c.struggle_score for c in chunks[:third]) / third
    last = sum(c.struggle_score for c in chunks[-third:]) / third
    trend = classify_trend(first, last, cfg)
    return TrendReport(
        provenance=provenance(
            PatternType.STRUGGLE_TREND,
            session.session_id,
            ConfidenceLevel.MEDIUM if trend != STEADY else ConfidenceLevel.LOW,
        ),
        trend=trend,
        chunks=chunks,
        total_operations=len(ops),
        avg_first_third=first,
        avg_last_third=last,
        change_score=last - first,
    )
