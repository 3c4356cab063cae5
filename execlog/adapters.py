"""Normalize foreign log shapes into event records.

Two requestor ecosystems write semantically equivalent logs:

- the native line format (``execlog.codec``), keyed by named fields;
- a nested-object format, one JSON object per line::

    {"time": "2024-03-01T12:00:00Z", "level": "debug",
     "event": {"name": "CommandStdErr",
               "agreement": {"id": "A"}, "task": {"id": "1"},
               "command": {"index": 3}, "output": "..."}}

Both map onto the same ``EventRecord`` models; nothing downstream of this
module knows which one a record came from.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from execlog.codec import ParseError, parse_line
from execlog.exit_status import format_exit_message
from execlog.models.enums import EventKind, Severity
from execlog.models.events import EVENT_ADAPTER, AnyEvent, UnknownEvent

_LEVELS: dict[str, Severity] = {
    "trace": Severity.DEBUG,
    "debug": Severity.DEBUG,
    "info": Severity.INFO,
    "warn": Severity.WARN,
    "warning": Severity.WARN,
    "error": Severity.WARN,
}


def parse_any_line(line: str) -> AnyEvent:
    """Parse a line in either supported format.  Raises ``ParseError``."""
    if line.lstrip().startswith("{"):
        return parse_nested_line(line)
    return parse_line(line)


def parse_nested_line(line: str) -> AnyEvent:
    """Parse one nested-object (JSON) log line."""
    text = line.strip()
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError("invalid JSON", text) from exc
    if not isinstance(obj, dict) or not isinstance(obj.get("event"), dict):
        raise ParseError("missing event object", text)
    return normalize_event(obj, raw=text)


def normalize_event(obj: dict[str, Any], raw: str = "") -> AnyEvent:
    """Map a decoded nested-object record onto the event model."""
    timestamp = _timestamp(obj.get("time"))
    severity = _LEVELS.get(str(obj.get("level", "")).lower())
    event = obj["event"]
    raw = raw or json.dumps(obj)

    name = event.get("name")
    builder = _BUILDERS.get(name) if isinstance(name, str) else None
    if builder is None:
        return UnknownEvent(raw=raw, timestamp=timestamp, severity=severity)

    try:
        data = {
            "agreement_id": event["agreement"]["id"],
            "task_id": (event.get("task") or {}).get("id", ""),
            **builder(event),
        }
        if timestamp is not None:
            data["timestamp"] = timestamp
        if severity is not None:
            data["severity"] = severity
        return EVENT_ADAPTER.validate_python(data)
    except (AttributeError, KeyError, TypeError, ValidationError):
        return UnknownEvent(raw=raw, timestamp=timestamp, severity=severity)


def _timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


# -- Per-variant field mapping -----------------------------------------------


def _agreement_created(event: dict[str, Any]) -> dict[str, Any]:
    provider = event["agreement"]["provider"]
    return {"kind": EventKind.AGREEMENT_CREATED, "provider_id": provider["id"], "provider_name": provider["name"]}


def _command_started(event: dict[str, Any]) -> dict[str, Any]:
    command = event["command"]
    return {
        "kind": EventKind.COMMAND_STARTED,
        "cmd_index": command["index"],
        "entry_point": command["entryPoint"],
        "args": command.get("args", []),
        "capture": command.get("capture"),
    }


def _output(kind: EventKind) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def build(event: dict[str, Any]) -> dict[str, Any]:
        return {"kind": kind, "cmd_index": event["command"]["index"], "chunk": event["output"].encode("utf-8")}

    return build


def _command_executed(event: dict[str, Any]) -> dict[str, Any]:
    message = event.get("message")
    # Fall back to the raw exit code, which may be negative.
    if message is None and isinstance(event.get("exitCode"), int):
        message = format_exit_message(event["exitCode"])
    return {
        "kind": EventKind.COMMAND_EXECUTED,
        "cmd_index": event["command"]["index"],
        "success": event["success"],
        "exit_message": message,
    }


def _transfer_started(event: dict[str, Any]) -> dict[str, Any]:
    transfer = event["transfer"]
    return {
        "kind": EventKind.TRANSFER_STARTED,
        "cmd_index": event["command"]["index"],
        "from": transfer["from"],
        "to": transfer["to"],
    }


def _transfer_executed(event: dict[str, Any]) -> dict[str, Any]:
    return {"kind": EventKind.TRANSFER_EXECUTED, "cmd_index": event["command"]["index"], "success": event["success"]}


def _download(kind: EventKind) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def build(event: dict[str, Any]) -> dict[str, Any]:
        return {"kind": kind, "path": event["path"]}

    return build


_BUILDERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    EventKind.AGREEMENT_CREATED: _agreement_created,
    EventKind.COMMAND_STARTED: _command_started,
    EventKind.COMMAND_STDOUT: _output(EventKind.COMMAND_STDOUT),
    EventKind.COMMAND_STDERR: _output(EventKind.COMMAND_STDERR),
    EventKind.COMMAND_EXECUTED: _command_executed,
    EventKind.TRANSFER_STARTED: _transfer_started,
    EventKind.TRANSFER_EXECUTED: _transfer_executed,
    EventKind.DOWNLOAD_STARTED: _download(EventKind.DOWNLOAD_STARTED),
    EventKind.DOWNLOAD_FINISHED: _download(EventKind.DOWNLOAD_FINISHED),
}
