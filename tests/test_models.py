"""Tests for the session model: parsing, input variants and record serialization."""

from __future__ import annotations

import json

from sessionlens.pattern_detection.base import (
    ConfidenceLevel,
    PatternType,
    Provenance,
    confidence_level,
    provenance,
    to_jsonable,
)
from sessionlens.pattern_detection.loops import SimpleLoop
from sessionlens.pattern_detection.models import (
    FileInput,
    GenericInput,
    SearchInput,
    Session,
    ShellInput,
    TodoInput,
    coerce_session,
    command_of,
    file_path_of,
    parse_tool_input,
    pattern_of,
)


# ---------------------------------------------------------------------------
# Input variants
# ---------------------------------------------------------------------------

class TestParseToolInput:

    def test_none_stays_none(self):
        assert parse_tool_input("Read", None) is None

    def test_file_tools_get_file_input(self):
        parsed = parse_tool_input("Edit", {"file_path": "a.py", "old_string": "x", "new_string": "y", "replace_all": True})
        assert isinstance(parsed, FileInput)
        assert parsed.file_path == "a.py"
        assert parsed.extra == {"replace_all": True}

    def test_notebook_path_becomes_file_path(self):
        parsed = parse_tool_input("NotebookEdit", {"notebook_path": "nb.ipynb"})
        assert parsed.file_path == "nb.ipynb"
        assert parsed.extra == {}

    def test_shell_and_search_variants(self):
        assert isinstance(parse_tool_input("Bash", {"command": "ls"}), ShellInput)
        assert isinstance(parse_tool_input("Grep", {"pattern": "foo"}), SearchInput)
        assert isinstance(parse_tool_input("TodoWrite", {"todos": [{"content": "x"}]}), TodoInput)

    def test_unknown_tool_keeps_raw_fields(self):
        parsed = parse_tool_input("WebFetch", {"url": "https://example.com"})
        assert isinstance(parsed, GenericInput)
        assert parsed.fields == {"url": "https://example.com"}

    def test_non_mapping_input_is_wrapped(self):
        parsed = parse_tool_input("Read", "a.py")
        assert parsed == GenericInput(fields={"value": "a.py"})

    def test_deep_equality_includes_extra_keys(self):
        a = parse_tool_input("Bash", {"command": "ls", "timeout": 10})
        b = parse_tool_input("Bash", {"command": "ls", "timeout": 20})
        assert a != b
        assert a == parse_tool_input("Bash", {"timeout": 10, "command": "ls"})


# ---------------------------------------------------------------------------
# Session parsing
# ---------------------------------------------------------------------------

class TestSessionFromDict:

    def test_camel_case_ingestion_shape(self):
        session = Session.from_dict({
            "sessionId": "s1",
            "projectName": "demo",
            "durationSeconds": 120,
            "toolOperations": [
                {"name": "Read", "input": {"file_path": "a.py"}, "output": "x", "status": "success"},
                {"name": "Bash", "input": {"command": "npm test"}, "status": "error",
                 "_contextMetadata": {"initiationType": "user_directed"}},
            ],
        })
        assert session.session_id == "s1"
        assert session.project_name == "demo"
        assert session.duration_seconds == 120.0
        assert len(session) == 2
        assert file_path_of(session.tool_operations[0]) == "a.py"
        assert command_of(session.tool_operations[1]) == "npm test"
        assert session.tool_operations[1].is_error
        assert session.tool_operations[1].is_user_directed

    def test_operations_are_renumbered_in_order(self):
        session = Session.from_dict({
            "session_id": "s",
            "tool_operations": [
                {"name": "Read", "operation_index": 7},
                "garbage",
                {"input": {"file_path": "x"}},
                {"name": "Edit", "operation_index": 3},
            ],
        })
        assert [op.name for op in session.tool_operations] == ["Read", "Edit"]
        assert [op.operation_index for op in session.tool_operations] == [0, 1]

    def test_unknown_status_is_success(self):
        session = Session.from_dict({"tool_operations": [{"name": "Read", "status": "pending"}]})
        assert session.tool_operations[0].is_success

    def test_structured_output_is_serialized(self):
        session = Session.from_dict({"tool_operations": [{"name": "Grep", "output": {"matches": 2}}]})
        assert json.loads(session.tool_operations[0].output) == {"matches": 2}

    def test_bad_duration_is_zero(self):
        assert Session.from_dict({"duration_seconds": "soon"}).duration_seconds == 0.0
        assert Session.from_dict({"duration_seconds": -5}).duration_seconds == 0.0

    def test_conversation_content_blocks(self):
        session = Session.from_dict({
            "conversation": [
                {"role": "user", "content": "hello"},
                {"type": "assistant", "message": {"content": [{"type": "text", "text": "hi"}, "there"]}},
                {"content": "no role"},
            ],
        })
        assert [(m.role, m.content) for m in session.conversation] == [("user", "hello"), ("assistant", "hi\nthere")]

    def test_search_pattern_falls_back_to_query(self):
        session = Session.from_dict({"tool_operations": [{"name": "WebSearch", "input": {"query": "docs"}}]})
        assert pattern_of(session.tool_operations[0]) == "docs"


class TestCoerceSession:

    def test_session_passes_through(self):
        session = Session(session_id="s")
        assert coerce_session(session) is session

    def test_mapping_is_parsed(self):
        assert coerce_session({"session_id": "m"}).session_id == "m"

    def test_unusable_input_is_none(self):
        assert coerce_session(None) is None
        assert coerce_session(42) is None
        assert coerce_session("session") is None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TestRecords:

    def _loop(self, timestamp: str) -> SimpleLoop:
        return SimpleLoop(
            provenance=Provenance(PatternType.SIMPLE_LOOP, "s", ConfidenceLevel.HIGH, timestamp),
            name="Bash",
            input=ShellInput(command="npm test"),
            count=3,
            start_index=0,
            end_index=2,
            tool_operation_indices=(0, 1, 2),
        )

    def test_equality_ignores_detection_timestamp(self):
        assert self._loop("2024-01-01T00:00:00+00:00") == self._loop("2025-06-01T00:00:00+00:00")

    def test_to_dict_is_json_ready(self):
        data = self._loop("2024-01-01T00:00:00+00:00").to_dict()
        assert data["input"] == {"command": "npm test"}
        assert data["tool_operation_indices"] == [0, 1, 2]
        assert data["provenance"] == {
            "pattern_type": "simple_loop",
            "detection_timestamp": "2024-01-01T00:00:00+00:00",
            "session_id": "s",
            "confidence_level": "high",
        }
        json.dumps(data)

    def test_to_jsonable_rounds_floats(self):
        assert to_jsonable({"x": 1 / 3}) == {"x": 0.333333}

    def test_confidence_level_bands(self):
        assert confidence_level(0.9) == ConfidenceLevel.HIGH
        assert confidence_level(0.5) == ConfidenceLevel.MEDIUM
        assert confidence_level(0.1) == ConfidenceLevel.LOW

    def test_provenance_helper_defaults_to_medium(self):
        assert provenance(PatternType.STAGNATION, "s").confidence_level == ConfidenceLevel.MEDIUM
