"""Tests for the detector registry and the session analysis facade."""

from __future__ import annotations

import json

import pytest

from sessionlens.pattern_detection import (
    DETECTORS,
    analyze_session,
    analyze_sessions,
    detector_names,
    get_detector,
    run_detector,
)
from sessionlens.pattern_detection.loops import SimpleLoop


def _op(name, status="success", output=None, **input):
    return {"name": name, "status": status, "output": output, "input": input or None}


def _session(ops, session_id="registry-test", **extra):
    data = {"session_id": session_id, "tool_operations": ops}
    data.update(extra)
    return data


def _looping(session_id="registry-test"):
    return _session([_op("Bash", command="npm test") for _ in range(10)], session_id=session_id)


class TestRegistry:

    def test_detector_order(self):
        names = detector_names()
        assert names[0] == "session_phases"
        assert names[1:4] == ["simple_loops", "advanced_loops", "plan_editing_loops"]
        assert names[-1] == "struggle_classification"
        assert len(names) == len(set(names)) == len(DETECTORS)

    def test_unknown_detector(self):
        with pytest.raises(KeyError, match="unknown detector: nope"):
            get_detector("nope")

    def test_phase_aware_flags(self):
        aware = {spec.name for spec in DETECTORS if spec.phase_aware}
        assert aware == {"redundant_sequences", "error_patterns"}

    def test_min_operations_follow_tuneables(self):
        assert get_detector("shotgun_debugging").min_operations == 15
        assert get_detector("advanced_loops").min_operations == 4
        assert get_detector("long_sessions").min_operations == 1
        assert get_detector("struggle_classification").min_operations == 0

    def test_run_detector(self):
        run = run_detector("simple_loops", _looping())
        assert run.name == "simple_loops"
        assert len(run.patterns) == 1
        assert isinstance(run.patterns[0], SimpleLoop)
        assert run.duration_ms >= 0
        assert run.to_dict()["patterns"][0]["count"] == 10

    def test_phase_aware_detector_gets_phases(self):
        ops = [_op("Edit", file_path=f"src/f{i}.py", old_string="a", new_string="b") for i in range(8)]
        ops += [
            _op("Read", file_path="a.py"),
            _op("Edit", file_path="a.py", old_string="x", new_string="x"),
            _op("Read", file_path="a.py"),
        ]
        ops += [_op("Edit", file_path=f"src/g{i}.py", old_string="a", new_string="b") for i in range(9)]
        found = run_detector("redundant_sequences", _session(ops)).patterns
        assert [p.indices for p in found] == [(8, 9, 10)]
        explored = [{"type": "exploration", "start_index": 8, "end_index": 10, "confidence": 0.9}]
        assert run_detector("redundant_sequences", _session(ops), phases=explored).patterns == []

    def test_trend_is_a_list(self):
        assert run_detector("struggle_trend", _looping()).patterns == []


class TestAnalyzeSession:

    def test_full_analysis(self):
        analysis = analyze_session(_looping("s1"))
        assert analysis.session_id == "s1"
        assert analysis.phases
        assert "session_phases" not in analysis.patterns
        assert "struggle_trend" not in analysis.patterns
        assert len(analysis.patterns["simple_loops"]) == 1
        assert analysis.trend is None
        assert analysis.pattern_count >= 1

    def test_to_dict_is_json_ready(self):
        ops = [_op("Bash", status="error", output="boom", command="make") for _ in range(120)]
        data = analyze_session(_session(ops, duration_seconds=4000)).to_dict()
        text = json.dumps(data)
        assert json.loads(text)["trend"]["trend"] == "steady"

    def test_unusable_session(self):
        analysis = analyze_session(None)
        assert analysis.session_id == ""
        assert analysis.patterns == {}
        assert analysis.pattern_count == 0

    def test_analyze_sessions_keeps_order(self):
        batch = [_looping(f"s{i}") for i in range(6)]
        results = analyze_sessions(batch, max_workers=3)
        assert [r.session_id for r in results] == [f"s{i}" for i in range(6)]

    def test_analyze_sessions_empty(self):
        assert analyze_sessions([]) == []

    def test_parallel_matches_serial(self):
        batch = [_looping(f"s{i}") for i in range(4)]
        serial = [analyze_session(s) for s in batch]
        assert analyze_sessions(batch, max_workers=4) == serial
