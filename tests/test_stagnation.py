"""Tests for stagnation detection and tool-aware operation identity."""

from __future__ import annotations

from sessionlens.pattern_detection.models import Session
from sessionlens.pattern_detection.stagnation import detect_stagnation, operations_identical


def _op(name, status="success", output=None, **input):
    return {"name": name, "status": status, "output": output, "input": input or None}


def _session(ops, session_id="stagnation-test"):
    return {"session_id": session_id, "tool_operations": ops}


def _pair(a, b):
    ops = Session.from_dict(_session([a, b])).tool_operations
    return ops[0], ops[1]


class TestOperationsIdentical:

    def test_uncaptured_reads_are_distinct(self):
        assert not operations_identical(*_pair(_op("Read"), _op("Read")))

    def test_reads_of_same_path_match_without_output(self):
        assert operations_identical(*_pair(_op("Read", file_path="a.py"), _op("Read", file_path="a.py")))
        assert not operations_identical(*_pair(_op("Read", file_path="a.py"), _op("Read", file_path="b.py")))

    def test_uncaptured_shell_and_search_pairs_are_distinct(self):
        assert not operations_identical(*_pair(_op("Bash"), _op("Bash")))
        assert not operations_identical(*_pair(_op("Grep"), _op("Grep")))

    def test_shell_commands_compare_by_command(self):
        a = _op("Bash", output="one", command="ls", description="list")
        b = _op("Bash", output="two", command="ls", description="list again")
        assert operations_identical(*_pair(a, b))

    def test_search_scope_must_match(self):
        a = _op("Grep", output="x", pattern="foo", glob="*.py")
        b = _op("Grep", output="x", pattern="foo", glob="*.js")
        assert not operations_identical(*_pair(a, b))
        assert operations_identical(*_pair(a, dict(a)))

    def test_different_tools(self):
        assert not operations_identical(*_pair(_op("Read", output="x", file_path="a"), _op("Edit", output="x", file_path="a")))


class TestDetectStagnation:

    def test_null_reads_are_not_stagnation(self):
        ops = [_op("Read"), _op("Read")]
        assert detect_stagnation(_session(ops)) == []

    def test_repeated_command_without_progress(self):
        ops = [_op("Bash", output="a.txt", command="ls"), _op("Bash", output="a.txt", command="ls")]
        found = detect_stagnation(_session(ops))
        assert len(found) == 1
        assert found[0].name == "Bash"
        assert (found[0].start_index, found[0].end_index, found[0].operation_index) == (0, 1, 1)
        assert found[0].output == "a.txt"

    def test_successful_mutations_are_productive(self):
        edit = _op("Edit", output="ok", file_path="a.py", old_string="x", new_string="y")
        assert detect_stagnation(_session([edit, dict(edit)])) == []

    def test_early_rereads_are_exploration(self):
        read = _op("Read", output="contents", file_path="a.py")
        ops = [read, dict(read)] + [_op("Glob", output=f"hit {i}", pattern=f"*{i}") for i in range(8)]
        assert detect_stagnation(_session(ops)) == []

    def test_late_rereads_are_stagnation(self):
        ops = [_op("Grep", output=f"hit {i}", pattern=f"p{i}") for i in range(8)]
        read = _op("Read", output="contents", file_path="a.py")
        ops += [read, dict(read)]
        found = detect_stagnation(_session(ops))
        assert [(f.start_index, f.end_index) for f in found] == [(8, 9)]

    def test_late_rereads_without_captured_output(self):
        ops = [_op("Grep", output=f"hit {i}", pattern=f"p{i}") for i in range(8)]
        ops += [_op("Read", file_path="a.py"), _op("Read", file_path="a.py")]
        found = detect_stagnation(_session(ops))
        assert len(found) == 1
        assert (found[0].start_index, found[0].end_index) == (8, 9)
        assert found[0].output is None

    def test_reread_around_edit_of_same_file(self):
        read = _op("Read", output="contents", file_path="a.py")
        ops = [_op("Grep", output=f"hit {i}", pattern=f"p{i}") for i in range(6)]
        ops += [_op("Edit", status="error", output="no match", file_path="a.py"), read, dict(read)]
        assert detect_stagnation(_session(ops)) == []

    def test_repeated_errors_are_reported(self):
        failing = _op("Bash", status="error", output="Error: boom", command="make")
        found = detect_stagnation(_session([failing, dict(failing), dict(failing)]))
        assert [f.operation_index for f in found] == [1, 2]

    def test_minimum_session_size(self):
        assert detect_stagnation(_session([_op("Bash", output="x", command="ls")])) == []
