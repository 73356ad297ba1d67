"""
Session and operation model read by every detector.

Tool inputs are a closed set of variants chosen by tool family, so detectors
ask for a file path or a shell command through the accessors below instead of
probing optional keys on a raw dict. Anything the variant does not name is
kept in ``extra`` so equality stays a deep comparison of the captured input.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..diagnostics import log_debug

log = logging.getLogger("sessionlens.models")

FILE_TOOLS = frozenset({"Read", "Edit", "MultiEdit", "Write", "NotebookEdit"})
SHELL_TOOLS = frozenset({"Bash", "BashOutput", "KillShell"})
SEARCH_TOOLS = frozenset({"Grep", "Glob", "WebSearch"})
TODO_TOOLS = frozenset({"TodoWrite"})

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class FileInput:
    file_path: Optional[str] = None
    old_string: Optional[str] = None
    new_string: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        for key in ("file_path", "old_string", "new_string"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class ShellInput:
    command: Optional[str] = None
    bash_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        if self.command is not None:
            out["command"] = self.command
        if self.bash_id is not None:
            out["bash_id"] = self.bash_id
        return out


@dataclass(frozen=True)
class SearchInput:
    pattern: Optional[str] = None
    path: Optional[str] = None
    glob: Optional[str] = None
    query: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        for key in ("pattern", "path", "glob", "query"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class TodoInput:
    todos: Tuple[Any, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        out["todos"] = list(self.todos)
        return out


@dataclass(frozen=True)
class GenericInput:
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.fields)


ToolInput = Union[FileInput, ShellInput, SearchInput, TodoInput, GenericInput]


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _split(raw: Mapping[str, Any], known: Iterable[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    names = set(known)
    picked = {k: raw.get(k) for k in names}
    extra = {str(k): v for k, v in raw.items() if k not in names}
    return picked, extra


def parse_tool_input(tool_name: str, raw: Any) -> Optional[ToolInput]:
    """Build the input variant for a tool; None stays None."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        return GenericInput(fields={"value": raw})

    if tool_name in FILE_TOOLS:
        picked, extra = _split(raw, ("file_path", "old_string", "new_string"))
        if picked["file_path"] is None and "notebook_path" in extra:
            picked["file_path"] = extra.pop("notebook_path")
        return FileInput(
            file_path=_opt_str(picked["file_path"]),
            old_string=_opt_str(picked["old_string"]),
            new_string=_opt_str(picked["new_string"]),
            extra=extra,
        )
    if tool_name in SHELL_TOOLS:
        picked, extra = _split(raw, ("command", "bash_id"))
        return ShellInput(
            command=_opt_str(picked["command"]),
            bash_id=_opt_str(picked["bash_id"]),
            extra=extra,
        )
    if tool_name in SEARCH_TOOLS:
        picked, extra = _split(raw, ("pattern", "path", "glob", "query"))
        return SearchInput(
            pattern=_opt_str(picked["pattern"]),
            path=_opt_str(picked["path"]),
            glob=_opt_str(picked["glob"]),
            query=_opt_str(picked["query"]),
            extra=extra,
        )
    if tool_name in TODO_TOOLS:
        picked, extra = _split(raw, ("todos",))
        todos = picked["todos"]
        if todos is None:
            todos = ()
        elif isinstance(todos, (list, tuple)):
            todos = tuple(todos)
        else:
            todos = (todos,)
        return TodoInput(todos=todos, extra=extra)
    return GenericInput(fields={str(k): v for k, v in raw.items()})


@dataclass(frozen=True)
class ToolOperation:
    name: str
    input: Optional[ToolInput] = None
    output: Optional[str] = None
    status: str = STATUS_SUCCESS
    operation_index: int = 0
    initiation_type: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def is_user_directed(self) -> bool:
        return self.initiation_type == "user_directed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "input": self.input.to_dict() if self.input is not None else None,
            "output": self.output,
            "status": self.status,
            "operation_index": self.operation_index,
            "initiation_type": self.initiation_type,
        }


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Session:
    session_id: str
    project_name: str = ""
    duration_seconds: float = 0.0
    tool_operations: Tuple[ToolOperation, ...] = ()
    conversation: Tuple[ConversationMessage, ...] = ()

    def __len__(self) -> int:
        return len(self.tool_operations)

    @property
    def operations(self) -> Tuple[ToolOperation, ...]:
        return self.tool_operations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "project_name": self.project_name,
            "duration_seconds": self.duration_seconds,
            "tool_operations": [op.to_dict() for op in self.tool_operations],
            "conversation": [m.to_dict() for m in self.conversation],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        """Build a session from the ingestion shape (camelCase) or snake_case."""
        session_id = _first(data, "session_id", "sessionId")
        project = _first(data, "project_name", "projectName")
        duration = _first(data, "duration_seconds", "durationSeconds")
        raw_ops = _first(data, "tool_operations", "toolOperations")
        raw_conversation = _first(data, "conversation", "conversationData")
        return cls(
            session_id=str(session_id) if session_id is not None else "",
            project_name=str(project) if project is not None else "",
            duration_seconds=_to_float(duration),
            tool_operations=_parse_operations(raw_ops, str(session_id or "")),
            conversation=_parse_conversation(raw_conversation),
        )


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number and number >= 0 else 0.0


def _coerce_output(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def _initiation_type(entry: Mapping[str, Any]) -> Optional[str]:
    direct = _first(entry, "initiation_type", "initiationType")
    if direct is not None:
        return str(direct)
    meta = _first(entry, "_context_metadata", "_contextMetadata")
    if isinstance(meta, Mapping):
        value = _first(meta, "initiation_type", "initiationType")
        return str(value) if value is not None else None
    return None


def _parse_operations(raw_ops: Any, session_id: str) -> Tuple[ToolOperation, ...]:
    if raw_ops is None:
        return ()
    if not isinstance(raw_ops, (list, tuple)):
        log_debug("models", f"session {session_id}: tool operations is {type(raw_ops).__name__}, ignoring")
        return ()

    ops: List[ToolOperation] = []
    for position, entry in enumerate(raw_ops):
        if isinstance(entry, ToolOperation):
            entry = entry.to_dict()
        if not isinstance(entry, Mapping):
            log_debug("models", f"session {session_id}: dropping malformed operation at {position}")
            continue
        name = _first(entry, "name", "tool_name", "toolName")
        if not isinstance(name, str) or not name:
            log_debug("models", f"session {session_id}: dropping unnamed operation at {position}")
            continue
        index = len(ops)
        supplied = _first(entry, "operation_index", "operationIndex")
        if supplied is not None and supplied != index:
            log.debug("session %s: operation %s renumbered to %s", session_id, supplied, index)
        status = str(entry.get("status") or STATUS_SUCCESS).strip().lower()
        ops.append(ToolOperation(
            name=name,
            input=parse_tool_input(name, entry.get("input")),
            output=_coerce_output(entry.get("output")),
            status=STATUS_ERROR if status == STATUS_ERROR else STATUS_SUCCESS,
            operation_index=index,
            initiation_type=_initiation_type(entry),
        ))
    return tuple(ops)


def _message_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, Mapping):
                text = block.get("text")
                if text is None:
                    text = block.get("content")
                if isinstance(text, str):
                    parts.append(text)
        return "\n".join(parts)
    if isinstance(content, Mapping):
        return _message_text(content.get("content"))
    return str(content)


def _parse_conversation(raw: Any) -> Tuple[ConversationMessage, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    messages: List[ConversationMessage] = []
    for entry in raw:
        if isinstance(entry, ConversationMessage):
            messages.append(entry)
            continue
        if not isinstance(entry, Mapping):
            continue
        role = entry.get("role") or entry.get("type")
        content = entry.get("content")
        message = entry.get("message")
        if content is None and isinstance(message, Mapping):
            role = role or message.get("role")
            content = message.get("content")
        if not role:
            continue
        messages.append(ConversationMessage(role=str(role), content=_message_text(content)))
    return tuple(messages)


def coerce_session(session: Any) -> Optional[Session]:
    """Return a Session for any accepted shape, or None when unusable.

    Detectors call this at their boundary so that malformed input degrades
    to "no patterns" instead of raising.
    """
    if isinstance(session, Session):
        return session
    if isinstance(session, Mapping):
        try:
            return Session.from_dict(session)
        except (TypeError, ValueError, AttributeError) as exc:
            log_debug("models", "could not coerce session mapping", exc)
            return None
    if session is not None:
        log_debug("models", f"unsupported session type {type(session).__name__}")
    return None


# --------------- Accessors ---------------

def file_path_of(op: ToolOperation) -> Optional[str]:
    if isinstance(op.input, FileInput):
        return op.input.file_path
    return None


def command_of(op: ToolOperation) -> Optional[str]:
    if isinstance(op.input, ShellInput):
        return op.input.command
    return None


def bash_id_of(op: ToolOperation) -> Optional[str]:
    if isinstance(op.input, ShellInput):
        return op.input.bash_id
    return None


def pattern_of(op: ToolOperation) -> Optional[str]:
    """Search pattern, falling back to the free-text query."""
    if isinstance(op.input, SearchInput):
        return op.input.pattern if op.input.pattern is not None else op.input.query
    return None


def todos_of(op: ToolOperation) -> Tuple[Any, ...]:
    if isinstance(op.input, TodoInput):
        return op.input.todos
    return ()
