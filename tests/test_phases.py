"""Tests for the phase classifier and phase helpers."""

from __future__ import annotations

from sessionlens.pattern_detection.base import PhaseType
from sessionlens.pattern_detection.models import Session
from sessionlens.pattern_detection.phases import (
    SIGNAL_NAMES,
    classify_window,
    coerce_phases,
    detect_session_phases,
    find_phase,
    in_confident_exploration,
    window_size_for,
)


def _op(name, status="success", output=None, **input):
    return {"name": name, "status": status, "output": output, "input": input or None}


def _session(ops, session_id="phase-test"):
    return Session.from_dict({"session_id": session_id, "tool_operations": ops})


def _assert_partition(phases, total):
    assert phases[0].start_index == 0
    assert phases[-1].end_index == total - 1
    for previous, current in zip(phases, phases[1:]):
        assert current.start_index == previous.end_index + 1
    for phase in phases:
        assert phase.start_index <= phase.end_index


class TestWindowSize:

    def test_clamped_between_three_and_eight(self):
        assert window_size_for(1) == 3
        assert window_size_for(20) == 5
        assert window_size_for(200) == 8


class TestClassifyWindow:

    def test_reads_are_exploration(self):
        window = _session([_op("Read", file_path=f"f{i}.py") for i in range(4)]).tool_operations
        segment = classify_window(window)
        assert segment.type == PhaseType.EXPLORATION
        assert segment.confidence >= 0.8

    def test_edits_are_implementation(self):
        window = _session([_op("Edit", file_path=f"f{i}.py") for i in range(4)]).tool_operations
        assert classify_window(window).type == PhaseType.IMPLEMENTATION

    def test_test_commands_are_testing(self):
        window = _session([_op("Bash", command="npm test") for _ in range(3)]).tool_operations
        assert classify_window(window).type == PhaseType.TESTING

    def test_unrecognized_tools_are_unknown(self):
        window = _session([_op("WebFetch", url="https://x") for _ in range(3)]).tool_operations
        segment = classify_window(window)
        assert segment.type == PhaseType.UNKNOWN
        assert segment.confidence == 0.1


class TestDetectSessionPhases:

    def test_empty_session(self):
        assert detect_session_phases(_session([])) == []
        assert detect_session_phases(None) == []

    def test_single_operation_covers_itself(self):
        phases = detect_session_phases(_session([_op("Read", file_path="a.py")]))
        assert len(phases) == 1
        assert (phases[0].start_index, phases[0].end_index) == (0, 0)

    def test_exploration_then_implementation(self):
        ops = [_op("Read", file_path=f"f{i}.py") for i in range(6)]
        ops += [_op("Edit", file_path=f"f{i}.py") for i in range(6)]
        phases = detect_session_phases(_session(ops))
        assert phases[0].type == PhaseType.EXPLORATION
        assert phases[-1].type == PhaseType.IMPLEMENTATION
        _assert_partition(phases, 12)

    def test_phases_partition_a_mixed_session(self):
        ops = []
        for i in range(5):
            ops += [
                _op("Read", file_path=f"f{i}.py"),
                _op("Grep", pattern=f"p{i}"),
                _op("Edit", file_path=f"f{i}.py"),
                _op("Bash", command="npm test"),
            ]
        phases = detect_session_phases(_session(ops))
        _assert_partition(phases, len(ops))

    def test_phases_carry_session_id_and_signals(self):
        phases = detect_session_phases(_session([_op("Read", file_path="a.py")] * 4, session_id="abc"))
        assert phases[0].provenance.session_id == "abc"
        assert set(phases[0].signals) == set(SIGNAL_NAMES)
        assert phases[0].signals["read_operations"] > 0
        assert phases[0].signals["edit_operations"] == 0


class TestPhaseHelpers:

    def test_coerce_phases_from_dicts(self):
        phases = coerce_phases([
            {"type": "exploration", "start_index": 0, "end_index": 4, "confidence": 0.8},
            {"type": "testing", "startIndex": 5, "endIndex": 9},
            {"type": "nonsense", "start_index": 0, "end_index": 1},
            "not a phase",
        ])
        assert [p.type for p in phases] == [PhaseType.EXPLORATION, PhaseType.TESTING]
        assert phases[1].start_index == 5

    def test_find_phase(self):
        phases = coerce_phases([
            {"type": "exploration", "start_index": 0, "end_index": 4, "confidence": 0.8},
            {"type": "implementation", "start_index": 5, "end_index": 9, "confidence": 0.8},
        ])
        assert find_phase(phases, 6).type == PhaseType.IMPLEMENTATION
        assert find_phase(phases, 12) is None

    def test_in_confident_exploration(self):
        phases = coerce_phases([{"type": "exploration", "start_index": 2, "end_index": 4, "confidence": 0.5}])
        assert in_confident_exploration(phases, 0, 2, 0.4)
        assert not in_confident_exploration(phases, 0, 2, 0.6)
        assert not in_confident_exploration(phases, 5, 6, 0.4)
