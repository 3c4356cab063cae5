"""Persisted line format for event records.

Every record occupies exactly one line::

    <timestamp> <severity> <Tag>(<key>=<value>, ...)

for example::

    2024-03-01T12:00:00.000123+00:00 DEBUG CommandStdErr(agreement_id='A', task_id='1', cmd_index=3, chunk=b'oops\\n')

Values are Python literals, so byte chunks, lists and ``None`` survive a
round trip unchanged.  Keys follow the model field order (wire aliases such as
``from``/``to`` included).  Readers ignore keys they do not know without
evaluating their values.  A line whose tag is unknown, which lacks a required
field, or whose known field holds something other than a literal becomes an
``UnknownEvent`` rather than an error.
"""

from __future__ import annotations

import ast
import io
import re
import tokenize
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from execlog.models.enums import Severity
from execlog.models.events import EVENT_TYPES, AnyEvent, UnknownEvent

_LINE_RE = re.compile(r"^(?P<timestamp>\S+) (?P<severity>[A-Z]+) (?P<tag>[A-Za-z_]\w*)\((?P<body>.*)\)\s*$")

_OPENERS = frozenset("([{")
_CLOSERS = frozenset(")]}")

# Keys owned by the line prefix, never by the payload.
_RESERVED = frozenset({"kind", "timestamp", "severity"})


class ParseError(ValueError):
    """Raised when a line cannot be read as an event line at all."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(f"{message}: {line!r}")
        self.line = line


# -- Write -------------------------------------------------------------------


def format_line(record: AnyEvent) -> str:
    """Serialize a record to one log line (without the trailing newline)."""
    if isinstance(record, UnknownEvent):
        return record.raw
    payload = record.model_dump(by_alias=True, exclude=set(_RESERVED))
    fields = ", ".join(f"{key}={_literal(value)!r}" for key, value in payload.items())
    return f"{record.timestamp.isoformat()} {record.severity.value} {record.kind.value}({fields})"


def _literal(value: Any) -> Any:
    """Reduce a dumped value to plain literals (enums become their values)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_literal(k): _literal(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_literal(v) for v in value]
    return value


# -- Read --------------------------------------------------------------------


def parse_line(line: str) -> AnyEvent:
    """Parse one log line.

    Raises ``ParseError`` if the timestamp, severity or payload shape is
    unreadable.  Unknown tags, and known tags whose fields do not validate,
    yield ``UnknownEvent``.
    """
    text = line.rstrip("\r\n")
    match = _LINE_RE.match(text)
    if match is None:
        raise ParseError("not an event line", text)

    try:
        timestamp = datetime.fromisoformat(match["timestamp"])
    except ValueError as exc:
        raise ParseError("invalid timestamp", text) from exc

    try:
        severity = Severity(match["severity"])
    except ValueError as exc:
        raise ParseError("invalid severity", text) from exc

    # Payloads of unknown tags are kept verbatim and never evaluated.
    model = EVENT_TYPES.get(match["tag"])
    if model is None:
        return UnknownEvent(raw=text, timestamp=timestamp, severity=severity)

    try:
        segments = _split_fields(match["body"])
    except (ValueError, tokenize.TokenError) as exc:
        raise ParseError("invalid payload", text) from exc

    known = _field_keys(model)
    data: dict[str, Any] = {}
    try:
        for key, source in segments:
            if key in known:
                data[key] = ast.literal_eval(source)
        return model.model_validate({**data, "timestamp": timestamp, "severity": severity})
    except (SyntaxError, TypeError, ValueError, ValidationError):
        return UnknownEvent(raw=text, timestamp=timestamp, severity=severity)


def _field_keys(model: type[BaseModel]) -> frozenset[str]:
    """Payload keys ``model`` understands: field names and their wire aliases."""
    keys = set(model.model_fields)
    keys.update(f.alias for f in model.model_fields.values() if f.alias)
    return frozenset(keys - _RESERVED)


def _split_fields(body: str) -> list[tuple[str, str]]:
    """Split ``body`` into ``(key, value source)`` pairs without evaluating values."""
    pairs: list[tuple[str, str]] = []
    for segment in _split_top_level(body):
        key, sep, value = segment.partition("=")
        key = key.strip()
        if not sep or not key.isidentifier():
            raise ValueError(f"malformed field {segment!r}")
        pairs.append((key, value.strip()))
    return pairs


def _split_top_level(body: str) -> list[str]:
    """Split ``body`` at commas that are not nested inside brackets or strings."""
    segments: list[str] = []
    depth = 0
    start = 0
    for token in tokenize.generate_tokens(io.StringIO(body).readline):
        if token.type != tokenize.OP:
            continue
        if token.string in _OPENERS:
            depth += 1
        elif token.string in _CLOSERS:
            depth -= 1
        elif token.string == "," and depth == 0:
            end = token.start[1]
            segments.append(body[start:end])
            start = end + 1
    segments.append(body[start:])
    return [s for s in segments if s.strip()]
