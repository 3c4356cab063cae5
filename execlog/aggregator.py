"""Summary aggregation.

Folds the fine-grained event stream into one human-readable line per logical
operation (a command run or a file transfer).  Output chunks never produce a
line of their own; only a short tail of stderr is kept per open operation so
that a failure summary can quote the error even when no full log is written.

Operations that are started but never finished stay in the pending map and
are reported by ``open_operations`` -- nothing is forgotten silently.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from execlog.exit_status import parse_exit_code, possibly_negative
from execlog.models.enums import OperationKind, Severity
from execlog.models.events import (
    AgreementCreated,
    AnyEvent,
    CommandExecuted,
    CommandStarted,
    CommandStdErr,
    CommandStdOut,
    DownloadFinished,
    DownloadStarted,
    TransferExecuted,
    TransferStarted,
    UnknownEvent,
)
from execlog.models.outcome import OperationKey


class DuplicateOperationError(RuntimeError):
    """Raised when an operation key is opened twice without being closed."""

    def __init__(self, key: OperationKey) -> None:
        super().__init__(f"Operation {key} opened twice without being closed (cmd_index reused?)")
        self.key = key


@dataclass
class PendingOperation:
    """An operation that has started and not yet finished."""

    key: OperationKey
    kind: OperationKind
    descriptor: str
    started_at: datetime
    stderr_tail: bytearray = field(default_factory=bytearray)
    stdout_bytes: int = 0

    def stderr_hint(self) -> str | None:
        """Last non-empty line of the buffered stderr, if any."""
        text = self.stderr_tail.decode("utf-8", errors="replace")
        for line in reversed(text.splitlines()):
            if line.strip():
                return line.strip()
        return None


@dataclass(frozen=True)
class SummaryLine:
    """One human-readable line for the console sink."""

    severity: Severity
    text: str
    timestamp: datetime | None = None
    key: OperationKey | None = None


class SummaryAggregator:
    """Thread-safe fold of event records into summary lines.

    Pending operations are keyed by ``(agreement_id, task_id, cmd_index)``, so
    pipelined commands of the same task never share state.
    """

    def __init__(self, stderr_hint_bytes: int = 512) -> None:
        self._pending: dict[OperationKey, PendingOperation] = {}
        self._providers: dict[str, str] = {}
        self._hint_bytes = stderr_hint_bytes
        self._lock = threading.Lock()

    # -- Feed ------------------------------------------------------------------

    def feed(self, record: AnyEvent) -> SummaryLine | None:
        """Consume one record; return the summary line it produces, if any.

        Raises ``DuplicateOperationError`` if the record starts an operation
        that is already open.  The original pending entry is kept.
        """
        with self._lock:
            return self._feed(record)

    def _feed(self, record: AnyEvent) -> SummaryLine | None:  # noqa: C901
        if isinstance(record, UnknownEvent):
            return SummaryLine(Severity.DEBUG, f"unrecognized record: {record.raw}", record.timestamp)

        if isinstance(record, AgreementCreated):
            self._providers[record.agreement_id] = record.provider_name
            return SummaryLine(
                Severity.INFO,
                f"agreement {record.agreement_id} created with provider "
                f"'{record.provider_name}' ({record.provider_id})",
                record.timestamp,
            )

        if isinstance(record, CommandStarted):
            return self._open(record.key, OperationKind.RUN, record.command_line, record.timestamp)

        if isinstance(record, TransferStarted):
            return self._open(record.key, OperationKind.TRANSFER, f"{record.source} -> {record.target}", record.timestamp)

        if isinstance(record, CommandStdErr):
            pending = self._pending.get(record.key)
            if pending is not None:
                pending.stderr_tail.extend(record.chunk)
                del pending.stderr_tail[: -self._hint_bytes or None]
            return None

        if isinstance(record, CommandStdOut):
            pending = self._pending.get(record.key)
            if pending is not None:
                pending.stdout_bytes += len(record.chunk)
            return None

        if isinstance(record, CommandExecuted):
            return self._close(record.key, OperationKind.RUN, record.success, record.exit_message, record.timestamp)

        if isinstance(record, TransferExecuted):
            return self._close(record.key, OperationKind.TRANSFER, record.success, None, record.timestamp)

        if isinstance(record, DownloadStarted):
            return SummaryLine(Severity.INFO, f"{self._prefix(record.agreement_id)}downloading {record.path}", record.timestamp)

        if isinstance(record, DownloadFinished):
            return SummaryLine(Severity.INFO, f"{self._prefix(record.agreement_id)}downloaded {record.path}", record.timestamp)

        return None

    def _open(self, key: OperationKey, kind: OperationKind, descriptor: str, timestamp: datetime) -> SummaryLine:
        if key in self._pending:
            raise DuplicateOperationError(key)
        self._pending[key] = PendingOperation(key=key, kind=kind, descriptor=descriptor, started_at=timestamp)
        return SummaryLine(Severity.DEBUG, f"{self._label(key)} {kind} {descriptor} started", timestamp, key)

    def _close(
        self,
        key: OperationKey,
        kind: OperationKind,
        success: bool,
        exit_message: str | None,
        timestamp: datetime,
    ) -> SummaryLine:
        pending = self._pending.pop(key, None)
        if pending is None:
            logger.warning("Finish record for {} without a recorded start", key)
            return SummaryLine(Severity.WARN, f"{self._label(key)} {kind} finished without a recorded start", timestamp, key)

        label = f"{self._label(key)} {kind} {pending.descriptor}"
        if success:
            return SummaryLine(Severity.INFO, f"{label} succeeded", timestamp, key)

        text = f"{label} failed"
        if exit_message:
            text += f": {exit_message}"
            code = parse_exit_code(exit_message)
            if code is not None and possibly_negative(code):
                text += " (possibly a negative exit status)"
        hint = pending.stderr_hint()
        if hint:
            text += f"; stderr: {hint}"
        return SummaryLine(Severity.WARN, text, timestamp, key)

    # -- Query -----------------------------------------------------------------

    def open_operations(self) -> list[PendingOperation]:
        """Snapshot of operations started but never finished, sorted by key."""
        with self._lock:
            return [
                dataclasses.replace(op, stderr_tail=bytearray(op.stderr_tail))
                for _, op in sorted(self._pending.items())
            ]

    def provider_name(self, agreement_id: str) -> str | None:
        return self._providers.get(agreement_id)

    # -- Formatting ------------------------------------------------------------

    def _prefix(self, agreement_id: str) -> str:
        provider = self._providers.get(agreement_id)
        return f"[{provider}] " if provider else ""

    def _label(self, key: OperationKey) -> str:
        return f"{self._prefix(key.agreement_id)}task {key.task_id} #{key.cmd_index}"
