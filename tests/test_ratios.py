"""Tests for the whole-session ratio detectors."""

from __future__ import annotations

from sessionlens.pattern_detection.base import ConfidenceLevel
from sessionlens.pattern_detection.ratios import (
    detect_context_switching,
    detect_no_progress_sessions,
    detect_reading_spirals,
    detect_shotgun_debugging,
)

TOOLS = ("Read", "Edit", "Bash", "Grep", "Glob", "Write")


def _op(name, status="success", output=None, **input):
    return {"name": name, "status": status, "output": output, "input": input or None}


def _session(ops, session_id="ratio-test", duration=0):
    return {"session_id": session_id, "tool_operations": ops, "duration_seconds": duration}


def _user_directed(op):
    op = dict(op)
    op["_context_metadata"] = {"initiation_type": "user_directed"}
    return op


class TestReadingSpirals:

    def test_many_reads_no_actions(self):
        ops = [_op("Read", file_path=f"src/f{i}.py") for i in range(12)]
        found = detect_reading_spirals(_session(ops))
        assert len(found) == 1
        spiral = found[0]
        assert (spiral.read_count, spiral.action_count, spiral.unique_files) == (12, 0, 12)
        assert spiral.ratio == 12.0
        assert spiral.type == "reading_spiral"
        assert spiral.provenance.confidence_level == ConfidenceLevel.HIGH

    def test_reads_balanced_by_edits(self):
        ops = [_op("Read", file_path=f"src/f{i}.py") for i in range(11)]
        ops += [_op("Edit", file_path=f"src/f{i}.py") for i in range(5)]
        assert detect_reading_spirals(_session(ops)) == []

    def test_user_directed_reads_are_excluded(self):
        ops = [_user_directed(_op("Read", file_path=f"src/f{i}.py")) for i in range(12)]
        assert detect_reading_spirals(_session(ops)) == []

    def test_below_minimum(self):
        ops = [_op("Read", file_path=f"src/f{i}.py") for i in range(4)]
        assert detect_reading_spirals(_session(ops)) == []


class TestShotgunDebugging:

    def _ops(self, count=16):
        return [_op(TOOLS[i % len(TOOLS)]) for i in range(count)]

    def test_fast_varied_tool_use(self):
        found = detect_shotgun_debugging(_session(self._ops(), duration=120))
        assert len(found) == 1
        assert found[0].tool_variety == 6
        assert found[0].total_tools == 16
        assert found[0].tool_velocity == 8.0
        assert found[0].provenance.confidence_level == ConfidenceLevel.HIGH

    def test_slow_session_is_not_shotgun(self):
        assert detect_shotgun_debugging(_session(self._ops(), duration=3600)) == []

    def test_user_directed_operations_do_not_count(self):
        ops = [_user_directed(op) for op in self._ops()]
        assert detect_shotgun_debugging(_session(ops, duration=120)) == []

    def test_needs_enough_operations(self):
        assert detect_shotgun_debugging(_session(self._ops(12), duration=60)) == []


class TestContextSwitching:

    def test_hopping_between_files(self):
        ops = [_op("Read", file_path=f"src/f{i}.py") for i in range(10)]
        found = detect_context_switching(_session(ops))
        assert len(found) == 1
        record = found[0]
        assert record.unique_files == 10
        assert record.switches == 9
        assert record.switch_rate == 0.9
        assert record.avg_ops_per_file == 1.0
        assert [t.file for t in record.top_files] == ["f0.py", "f1.py", "f2.py"]
        assert record.provenance.confidence_level == ConfidenceLevel.HIGH

    def test_focused_work_is_fine(self):
        ops = [_op("Edit", file_path="a.py") for _ in range(5)] + [_op("Read", file_path="b.py") for _ in range(5)]
        assert detect_context_switching(_session(ops)) == []

    def test_too_few_file_operations(self):
        ops = [_op("Read", file_path=f"f{i}.py") for i in range(6)] + [_op("Bash", command="ls") for _ in range(6)]
        assert detect_context_switching(_session(ops)) == []


class TestNoProgress:

    def test_all_operations_failed(self):
        ops = [_op("Bash", status="error", command=f"cmd {i}") for i in range(10)]
        found = detect_no_progress_sessions(_session(ops))
        assert len(found) == 1
        assert (found[0].total_operations, found[0].error_count) == (10, 10)
        assert (found[0].start_index, found[0].end_index) == (0, 9)

    def test_one_success_is_progress(self):
        ops = [_op("Bash", status="error", command=f"cmd {i}") for i in range(10)]
        ops.append(_op("Read", file_path="a.py"))
        assert detect_no_progress_sessions(_session(ops)) == []

    def test_below_minimum(self):
        ops = [_op("Bash", status="error", command=f"cmd {i}") for i in range(9)]
        assert detect_no_progress_sessions(_session(ops)) == []
