"""Read-only diagnostic queries over a persisted or in-memory event log.

Typical use, after a task failed::

    query = LogQuery.from_file("run.log")
    outcome = query.command_outcome("A", "1", 3)
    print(outcome.captured_stderr.decode())

Queries never modify the records and may be repeated freely.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from execlog.adapters import parse_any_line
from execlog.codec import ParseError
from execlog.models.enums import OperationKind
from execlog.models.events import (
    AnyEvent,
    CommandExecuted,
    CommandStarted,
    CommandStdErr,
    CommandStdOut,
    TransferExecuted,
    TransferStarted,
)
from execlog.models.outcome import CommandOutcome, OperationKey, TransferOutcome

if TYPE_CHECKING:
    from execlog.event_log import EventLog

_COMMAND_EVENTS = (CommandStarted, CommandStdOut, CommandStdErr, CommandExecuted)
_TRANSFER_EVENTS = (TransferStarted, TransferExecuted)


class LogQueryError(LookupError):
    """Base class for query failures."""

    def __init__(self, message: str, key: OperationKey) -> None:
        super().__init__(message)
        self.key = key


class OperationNotFoundError(LogQueryError):
    """No start record exists for the queried key."""


class OperationIncompleteError(LogQueryError):
    """The operation started but its finish record never arrived.

    ``partial`` holds everything captured up to the end of the log.
    """

    def __init__(self, message: str, key: OperationKey, partial: CommandOutcome | TransferOutcome) -> None:
        super().__init__(message, key)
        self.partial = partial


# -- Loading -----------------------------------------------------------------


def load_records(lines: Iterable[str], errors: list[ParseError] | None = None) -> list[AnyEvent]:
    """Parse log lines in either supported format, skipping malformed ones.

    Each skipped line is logged as a warning and appended to ``errors``.
    """
    records: list[AnyEvent] = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            records.append(parse_any_line(line))
        except ParseError as exc:
            logger.warning("Skipping malformed log line {}: {}", lineno, exc)
            if errors is not None:
                errors.append(exc)
    return records


# -- Query -------------------------------------------------------------------


class LogQuery:
    """Answers outcome questions about commands and transfers in a log."""

    def __init__(self, records: Iterable[AnyEvent], parse_errors: Iterable[ParseError] = ()) -> None:
        self._records: tuple[AnyEvent, ...] = tuple(records)
        self.parse_errors: list[ParseError] = list(parse_errors)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> LogQuery:
        errors: list[ParseError] = []
        records = load_records(lines, errors)
        return cls(records, errors)

    @classmethod
    def from_file(cls, path: str | Path) -> LogQuery:
        """Load a full-sink log file.  Raises ``FileNotFoundError`` if missing."""
        with Path(path).open(encoding="utf-8") as f:
            return cls.from_lines(f)

    @classmethod
    def from_event_log(cls, log: EventLog) -> LogQuery:
        return cls(log.records())

    @property
    def records(self) -> tuple[AnyEvent, ...]:
        return self._records

    # -- Commands --------------------------------------------------------------

    def command_outcome(self, agreement_id: str, task_id: str, cmd_index: int) -> CommandOutcome:
        """Output and result of one command.

        Chunks are concatenated in emission order between the first matching
        ``CommandStarted`` and its ``CommandExecuted``.

        Raises ``OperationNotFoundError`` if the command never started and
        ``OperationIncompleteError`` if it never finished.
        """
        key = OperationKey(agreement_id, task_id, cmd_index)
        started: CommandStarted | None = None
        stdout = bytearray()
        stderr = bytearray()

        for record in self._records:
            if not isinstance(record, _COMMAND_EVENTS) or record.key != key:
                continue
            if started is None:
                if isinstance(record, CommandStarted):
                    started = record
                continue
            if isinstance(record, CommandStdOut):
                stdout += record.chunk
            elif isinstance(record, CommandStdErr):
                stderr += record.chunk
            elif isinstance(record, CommandExecuted):
                return _command_outcome(started, stdout, stderr, record)

        if started is None:
            raise OperationNotFoundError(f"No command started for {key}", key)
        raise OperationIncompleteError(
            f"Command {key} started but never finished",
            key,
            partial=_command_outcome(started, stdout, stderr, None),
        )

    def failed_commands(self) -> list[CommandOutcome]:
        """Every finished command that did not succeed, in start order."""
        failed = []
        for kind, key in self.operations():
            if kind != OperationKind.RUN:
                continue
            try:
                outcome = self.command_outcome(*key)
            except OperationIncompleteError:
                continue
            if not outcome.success:
                failed.append(outcome)
        return failed

    # -- Transfers -------------------------------------------------------------

    def transfer_outcome(self, agreement_id: str, task_id: str, cmd_index: int) -> TransferOutcome:
        """Source, target and result of one transfer.  Same failure modes as ``command_outcome``."""
        key = OperationKey(agreement_id, task_id, cmd_index)
        started: TransferStarted | None = None

        for record in self._records:
            if not isinstance(record, _TRANSFER_EVENTS) or record.key != key:
                continue
            if started is None:
                if isinstance(record, TransferStarted):
                    started = record
                continue
            if isinstance(record, TransferExecuted):
                return _transfer_outcome(started, record.success)

        if started is None:
            raise OperationNotFoundError(f"No transfer started for {key}", key)
        raise OperationIncompleteError(
            f"Transfer {key} started but never finished",
            key,
            partial=_transfer_outcome(started, False),
        )

    # -- Listing ---------------------------------------------------------------

    def operations(self) -> list[tuple[OperationKind, OperationKey]]:
        """Every started command and transfer, in start order."""
        seen: set[OperationKey] = set()
        result = []
        for record in self._records:
            if isinstance(record, CommandStarted):
                kind = OperationKind.RUN
            elif isinstance(record, TransferStarted):
                kind = OperationKind.TRANSFER
            else:
                continue
            if record.key not in seen:
                seen.add(record.key)
                result.append((kind, record.key))
        return result


def _command_outcome(
    started: CommandStarted,
    stdout: bytearray,
    stderr: bytearray,
    executed: CommandExecuted | None,
) -> CommandOutcome:
    return CommandOutcome(
        agreement_id=started.agreement_id,
        task_id=started.task_id,
        cmd_index=started.cmd_index,
        entry_point=started.entry_point,
        args=list(started.args),
        captured_stdout=bytes(stdout),
        captured_stderr=bytes(stderr),
        success=executed.success if executed else False,
        exit_message=executed.exit_message if executed else None,
    )


def _transfer_outcome(started: TransferStarted, success: bool) -> TransferOutcome:
    return TransferOutcome(
        agreement_id=started.agreement_id,
        task_id=started.task_id,
        cmd_index=started.cmd_index,
        source=started.source,
        target=started.target,
        success=success,
    )
