"""Unit tests for the persisted line format."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from execlog.codec import ParseError, format_line, parse_line
from execlog.models import (
    AgreementCreated,
    CaptureMode,
    CommandExecuted,
    CommandStarted,
    CommandStdErr,
    CommandStdOut,
    DownloadFinished,
    DownloadStarted,
    Severity,
    TransferExecuted,
    TransferStarted,
    UnknownEvent,
)

TS = datetime(2024, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

ALL_VARIANTS = [
    AgreementCreated(timestamp=TS, agreement_id="A", provider_id="0xabc", provider_name="node-1"),
    CommandStarted(
        timestamp=TS,
        agreement_id="A",
        task_id="1",
        cmd_index=3,
        entry_point="/bin/sh",
        args=["-c", "hashcat --keyspace -a 3 ?a?a?a, then echo 'done'"],
        capture={"stdout": CaptureMode.STREAM, "stderr": CaptureMode.AT_END},
    ),
    CommandStdOut(timestamp=TS, agreement_id="A", task_id="1", cmd_index=3, chunk=b"9025\n"),
    CommandStdErr(timestamp=TS, agreement_id="A", task_id="1", cmd_index=3, chunk=b"bad (option), 'x'\n\xff"),
    CommandExecuted(timestamp=TS, agreement_id="A", task_id="1", cmd_index=3, success=True),
    CommandExecuted(
        timestamp=TS, agreement_id="A", task_id="1", cmd_index=4, success=False, exit_message="exited with code 255"
    ),
    TransferStarted(
        timestamp=TS,
        agreement_id="A",
        task_id="1",
        cmd_index=1,
        source="gftp://X/abc",
        target="container:/golem/work/keyspace.sh",
    ),
    TransferExecuted(timestamp=TS, agreement_id="A", task_id="1", cmd_index=1, success=False),
    DownloadStarted(timestamp=TS, agreement_id="A", task_id="1", path="/golem/output/out.txt"),
    DownloadFinished(timestamp=TS, agreement_id="A", task_id="1", path="/golem/output/out.txt"),
]


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("record", ALL_VARIANTS, ids=lambda r: r.kind.value)
def test_round_trip(record) -> None:
    line = format_line(record)
    assert "\n" not in line
    assert parse_line(line) == record


def test_unknown_event_round_trip() -> None:
    record = UnknownEvent(raw="2024-03-01T12:00:00+00:00 INFO TaskAccepted(task_id='1')")
    assert format_line(record) == record.raw


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


def test_format_line_layout() -> None:
    record = CommandExecuted(
        timestamp=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        agreement_id="A",
        task_id="1",
        cmd_index=3,
        success=False,
        exit_message="exited with code 255",
    )
    assert format_line(record) == (
        "2024-03-01T12:00:00+00:00 WARN CommandExecuted("
        "agreement_id='A', task_id='1', cmd_index=3, success=False, exit_message='exited with code 255')"
    )


def test_transfer_uses_wire_names() -> None:
    line = format_line(ALL_VARIANTS[6])
    assert "from='gftp://X/abc', to='container:/golem/work/keyspace.sh'" in line


def test_capture_written_as_plain_values() -> None:
    line = format_line(ALL_VARIANTS[1])
    assert "capture={'stdout': 'stream', 'stderr': 'at_end'}" in line


# ---------------------------------------------------------------------------
# Read: forward compatibility
# ---------------------------------------------------------------------------


def test_unknown_fields_are_ignored() -> None:
    line = (
        "2024-03-01T12:00:00+00:00 INFO CommandExecuted("
        "agreement_id='A', task_id='1', cmd_index=3, success=True, exit_code=0, activity_id='x')"
    )
    record = parse_line(line)
    assert isinstance(record, CommandExecuted)
    assert record.success is True


def test_unknown_tag_becomes_unknown_event() -> None:
    line = "2024-03-01T12:00:00+00:00 INFO TaskAccepted(agreement_id='A', task_id='1', result='ok')"
    record = parse_line(line)
    assert isinstance(record, UnknownEvent)
    assert record.raw == line
    assert record.severity == Severity.INFO
    assert record.timestamp == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_missing_required_field_becomes_unknown_event() -> None:
    line = "2024-03-01T12:00:00+00:00 INFO CommandExecuted(agreement_id='A', task_id='1', cmd_index=3)"
    record = parse_line(line)
    assert isinstance(record, UnknownEvent)
    assert record.raw == line


def test_unknown_field_with_non_literal_value_is_skipped() -> None:
    line = (
        "2024-03-01T12:00:00+00:00 INFO CommandExecuted("
        "agreement_id='A', task_id='1', cmd_index=3, success=True, activity=<Activity id=1>)"
    )
    record = parse_line(line)
    assert isinstance(record, CommandExecuted)
    assert record.key == ("A", "1", 3)
    assert record.success is True


def test_unknown_tag_payload_is_not_evaluated() -> None:
    line = (
        "2024-03-01T12:00:00+00:00 INFO TaskRejected("
        "agreement_id='A', task_id='1', reason=ValueError('x'))"
    )
    record = parse_line(line)
    assert isinstance(record, UnknownEvent)
    assert record.raw == line
    assert record.severity == Severity.INFO


@pytest.mark.parametrize(
    "body",
    [
        "agreement_id=, task_id='1', cmd_index=3, success=True",
        "agreement_id=open('x'), task_id='1', cmd_index=3, success=True",
        "agreement_id='A', task_id='1', cmd_index=3, success={[1]: 2}",
    ],
)
def test_known_field_with_unreadable_value_becomes_unknown_event(body: str) -> None:
    line = f"2024-03-01T12:00:00+00:00 INFO CommandExecuted({body})"
    record = parse_line(line)
    assert isinstance(record, UnknownEvent)
    assert record.raw == line


def test_trailing_newline_is_stripped() -> None:
    record = ALL_VARIANTS[2]
    assert parse_line(format_line(record) + "\n") == record


# ---------------------------------------------------------------------------
# Read: errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "line",
    [
        "",
        "garbage",
        "yesterday INFO CommandExecuted(agreement_id='A')",
        "2024-03-01T12:00:00+00:00 ERROR CommandExecuted(agreement_id='A')",
        "2024-03-01T12:00:00+00:00 INFO CommandExecuted('A', '1')",
    ],
)
def test_malformed_lines_raise_parse_error(line: str) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_line(line)
    assert excinfo.value.line == line
