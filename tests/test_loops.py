"""Tests for simple, advanced and plan-editing loop detection."""

from __future__ import annotations

from sessionlens.pattern_detection.base import ConfidenceLevel, PatternType
from sessionlens.pattern_detection.loops import (
    detect_advanced_loops,
    detect_plan_editing_loops,
    detect_simple_loops,
)
from sessionlens.pattern_detection.models import Session, ShellInput
from sessionlens.pattern_detection.productivity import has_circular_failure
from sessionlens.pattern_detection.thresholds import get_section


def _op(name, status="success", output=None, **input):
    return {"name": name, "status": status, "output": output, "input": input or None}


def _session(ops, session_id="loop-test"):
    return {"session_id": session_id, "tool_operations": ops}


# ---------------------------------------------------------------------------
# Simple loops
# ---------------------------------------------------------------------------

class TestSimpleLoops:

    def setup_method(self):
        self.npm_test = [_op("Bash", command="npm test") for _ in range(10)]

    def test_repeated_test_runs_without_progress(self):
        loops = detect_simple_loops(_session(self.npm_test))
        assert len(loops) == 1
        loop = loops[0]
        assert loop.name == "Bash"
        assert loop.input == ShellInput(command="npm test")
        assert (loop.count, loop.start_index, loop.end_index) == (10, 0, 9)
        assert loop.tool_operation_indices == tuple(range(10))
        assert loop.pattern_type == PatternType.SIMPLE_LOOP
        assert loop.provenance.confidence_level == ConfidenceLevel.HIGH

    def test_later_progress_suppresses_clean_shell_loop(self):
        ops = self.npm_test + [_op("Edit", file_path="src/app.ts", old_string="a", new_string="b")]
        assert detect_simple_loops(_session(ops)) == []

    def test_failing_shell_loop_is_reported_despite_progress(self):
        ops = [_op("Bash", status="error", output="1 failing", command="npm test") for _ in range(4)]
        ops.append(_op("Edit", file_path="src/app.ts", old_string="a", new_string="b"))
        loops = detect_simple_loops(_session(ops))
        assert len(loops) == 1
        assert loops[0].count == 4

    def test_short_repeats_are_tolerated(self):
        ops = [_op("Bash", command="ls") for _ in range(3)]
        assert detect_simple_loops(_session(ops)) == []

    def test_different_inputs_are_not_a_loop(self):
        ops = [_op("Bash", command=f"echo {i}") for i in range(10)]
        assert detect_simple_loops(_session(ops)) == []

    def test_progress_tracking_is_never_a_loop(self):
        ops = [_op("TodoWrite", todos=[{"content": "x", "status": "pending"}]) for _ in range(8)]
        assert detect_simple_loops(_session(ops)) == []

    def test_diverse_search_results_are_exploration(self):
        ops = [_op("Grep", output=f"match {i}", pattern="TODO") for i in range(6)]
        assert detect_simple_loops(_session(ops)) == []

    def test_reads_near_edits_are_tolerated(self):
        ops = [_op("Read", file_path="a.py") for _ in range(6)]
        ops.append(_op("Edit", file_path="a.py", old_string="x", new_string="y"))
        assert detect_simple_loops(_session(ops)) == []

    def test_separate_runs_do_not_overlap(self):
        ops = [_op("Bash", command="npm test") for _ in range(5)]
        ops.append(_op("Grep", pattern="x"))
        ops += [_op("Bash", command="npm test") for _ in range(5)]
        loops = detect_simple_loops(_session(ops))
        assert [(l.start_index, l.end_index) for l in loops] == [(0, 4), (6, 10)]

    def test_minimum_session_size(self):
        assert detect_simple_loops(_session([_op("Bash", command="npm test")])) == []
        assert detect_simple_loops(None) == []


# ---------------------------------------------------------------------------
# Advanced loops
# ---------------------------------------------------------------------------

class TestAdvancedLoops:

    def _cycle(self, status, times=3):
        ops = []
        for _ in range(times):
            ops.append(_op("Bash", status=status, output="Error: 2 failing" if status == "error" else "ok",
                           command="npm test"))
            ops.append(_op("Edit", status=status, output=None, file_path="a.py"))
        return ops

    def test_failing_edit_test_cycle(self):
        loops = detect_advanced_loops(_session(self._cycle("error")))
        assert len(loops) == 1
        loop = loops[0]
        assert loop.tool_sequence == ("Bash", "Edit")
        assert (loop.count, loop.start_index, loop.end_index, loop.length) == (3, 0, 5, 2)
        assert loop.provenance.confidence_level == ConfidenceLevel.HIGH

    def test_successful_cycle_is_productive(self):
        assert detect_advanced_loops(_session(self._cycle("success"))) == []

    def test_sequence_with_planning_is_productive(self):
        ops = []
        for _ in range(3):
            ops.append(_op("TodoWrite", status="error", todos=[]))
            ops.append(_op("Bash", status="error", command="npm test"))
        assert detect_advanced_loops(_session(ops)) == []

    def test_reported_loops_never_overlap(self):
        ops = self._cycle("error", times=4)
        loops = detect_advanced_loops(_session(ops))
        spans = sorted((l.start_index, l.end_index) for l in loops)
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start > prev_end

    def test_max_sequence_length_bounds_the_scan(self, monkeypatch):
        from sessionlens.pattern_detection.thresholds import reload_thresholds

        ops = []
        for _ in range(3):
            ops += [
                _op("Bash", status="error", command="make"),
                _op("Edit", status="error", file_path="a.c"),
                _op("Bash", status="error", command="make check"),
            ]
        assert detect_advanced_loops(_session(ops))[0].length == 3

        monkeypatch.setenv("SESSIONLENS_MAX_LOOP_LENGTH", "2")
        reload_thresholds()
        assert detect_advanced_loops(_session(ops)) == []

    def test_circular_failure_counts_every_repeat(self):
        cfg = get_section("advanced_loops")
        ops = Session.from_dict(_session(self._cycle("success", times=1) + self._cycle("error", times=2))).tool_operations
        assert has_circular_failure(ops, 3, cfg)
        assert not has_circular_failure(ops[:2], 3, cfg)

    def test_minimum_session_size(self):
        assert detect_advanced_loops(_session(self._cycle("error", times=1))) == []


# ---------------------------------------------------------------------------
# Plan editing loops
# ---------------------------------------------------------------------------

class TestPlanEditingLoops:

    def test_repeated_plan_edits(self):
        ops = [_op("Edit", file_path="docs/plan.md") for _ in range(3)]
        loops = detect_plan_editing_loops(_session(ops))
        assert len(loops) == 1
        assert loops[0].file_path == "docs/plan.md"
        assert loops[0].count == 3
        assert loops[0].operation_indices == (0, 1, 2)
        assert loops[0].provenance.confidence_level == ConfidenceLevel.HIGH

    def test_path_marker_is_case_sensitive(self):
        ops = [_op("Edit", file_path="PLAN-notes.md"), _op("Edit", file_path="PLAN-notes.md")]
        assert detect_plan_editing_loops(_session(ops)) == []

    def test_two_edits_are_medium_confidence(self):
        ops = [_op("Edit", file_path="plan-notes.md"), _op("Edit", file_path="plan-notes.md")]
        loops = detect_plan_editing_loops(_session(ops))
        assert loops[0].provenance.confidence_level == ConfidenceLevel.MEDIUM

    def test_other_operations_between_plan_edits(self):
        ops = [
            _op("Edit", file_path="plan.md"),
            _op("Read", file_path="src/app.py"),
            _op("Edit", file_path="src/app.py"),
            _op("Edit", file_path="plan.md"),
        ]
        loops = detect_plan_editing_loops(_session(ops))
        assert len(loops) == 1
        assert (loops[0].start_index, loops[0].end_index) == (0, 3)
        assert loops[0].operation_indices == (0, 3)

    def test_alternating_plan_files(self):
        ops = [
            _op("Edit", file_path="plan_a.md"),
            _op("Edit", file_path="plan_b.md"),
            _op("Edit", file_path="plan_a.md"),
        ]
        assert detect_plan_editing_loops(_session(ops)) == []

    def test_non_plan_files_ignored(self):
        ops = [_op("Edit", file_path="src/app.py") for _ in range(4)]
        assert detect_plan_editing_loops(_session(ops)) == []
