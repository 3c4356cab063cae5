"""Append-only event log with a console sink and a full file sink.

Both sinks are loguru handlers bound to this log instance through
``record["extra"]``; the diagnostic handler installed by
``execlog.log.setup_logging`` filters them out, so event lines never appear
twice.

- The file sink receives every record (DEBUG and above) as one structured
  line in the ``execlog.codec`` format.
- The console sink receives summary lines from the ``SummaryAggregator`` at
  ``console_min_severity`` and above.

A single lock serializes ``append`` so that the in-memory sequence, the file
and the console all observe the same order, and no two records ever share a
line.  Sink failures never reach the caller: a file that cannot be opened,
or that fails on a later write, is reported as ``SinkUnavailable`` and the log
continues console-only.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import uuid
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, TextIO

from loguru import logger

from execlog.aggregator import PendingOperation, SummaryAggregator, SummaryLine
from execlog.codec import format_line
from execlog.log import EVENT_LOG_EXTRA, ensure_logging
from execlog.models.enums import Severity
from execlog.settings import ExeclogSettings, get_settings

if TYPE_CHECKING:
    from loguru import Record

    from execlog.models.events import AnyEvent

_CONSOLE_FORMAT = "{extra[ts]} | <level>{level: <8}</level> | {message}"


class SinkUnavailableError(OSError):
    """The file sink could not be opened; the log continues console-only."""


class EventLog:
    """Ordered, append-only sequence of event records.

    Usable as a context manager; ``close`` runs on exit even when the block
    raised.
    """

    def __init__(self, settings: ExeclogSettings | None = None, console: TextIO | None = None) -> None:
        self._settings = settings or get_settings()
        ensure_logging(self._settings.log_level)
        self._id = uuid.uuid4().hex
        self._logger = logger.bind(**{EVENT_LOG_EXTRA: self._id})
        self._records: list[AnyEvent] = []
        self._aggregator = SummaryAggregator(stderr_hint_bytes=self._settings.stderr_hint_bytes)
        self._lock = threading.Lock()
        self._closed = False

        self._console_handler = logger.add(
            console if console is not None else sys.stderr,
            level=self._settings.console_min_severity.loguru_level,
            format=_CONSOLE_FORMAT,
            filter=self._only("console"),
        )
        self._file_handler: int | None = None
        self._file_path: Path | None = None

        if self._settings.file_sink_path:
            try:
                self._file_handler = self._open_file_sink(Path(self._settings.file_sink_path))
            except SinkUnavailableError as exc:
                self._notice(Severity.WARN, f"SinkUnavailable: {exc}; continuing with console output only")
        else:
            self._notice(
                Severity.INFO,
                "no log file configured; full command output is not persisted "
                "(failures show a short stderr hint only)",
            )

    # -- Sinks -----------------------------------------------------------------

    def _only(self, sink: str):
        log_id = self._id

        def _filter(record: Record) -> bool:
            extra = record["extra"]
            return extra.get(EVENT_LOG_EXTRA) == log_id and extra.get("sink") == sink

        return _filter

    def _open_file_sink(self, path: Path) -> int:
        try:
            handler = logger.add(
                path,
                level=Severity(self._settings.file_min_severity).loguru_level,
                format="{message}",
                filter=self._only("file"),
                encoding="utf-8",
                buffering=1,
                catch=False,
            )
        except OSError as exc:
            raise SinkUnavailableError(f"cannot open log file {path}: {exc}") from exc
        self._file_path = path
        logger.debug("EventLog {}: writing full log to {}", self._id, path)
        return handler

    @property
    def file_path(self) -> Path | None:
        """Path of the full log, or ``None`` if no file sink was ever opened."""
        return self._file_path

    @property
    def has_file_sink(self) -> bool:
        return self._file_handler is not None

    def _write_file(self, record: AnyEvent) -> None:
        if self._file_handler is None:
            return
        severity = record.severity or Severity.DEBUG
        line = format_line(record)
        try:
            self._logger.bind(sink="file").log(severity.loguru_level, line)
        except (OSError, ValueError) as exc:
            self._drop_file_sink(exc)

    def _drop_file_sink(self, exc: Exception) -> None:
        handler, self._file_handler = self._file_handler, None
        # Closing flushes the same broken file and may fail again.
        with contextlib.suppress(OSError, ValueError):
            logger.remove(handler)
        self._notice(
            Severity.WARN,
            f"SinkUnavailable: cannot write log file {self._file_path}: {exc}; continuing with console output only",
        )

    def _write_console(self, line: SummaryLine) -> None:
        ts = line.timestamp.isoformat(timespec="seconds") if line.timestamp else "-"
        self._logger.bind(sink="console", ts=ts).log(line.severity.loguru_level, line.text)

    def _notice(self, severity: Severity, text: str) -> None:
        self._write_console(SummaryLine(severity, text))
        logger.log(severity.loguru_level, "EventLog {}: {}", self._id, text)

    # -- Append ----------------------------------------------------------------

    def append(self, record: AnyEvent) -> None:
        """Append one record and write it to both sinks.

        The record is persisted before the aggregator sees it, so a
        ``DuplicateOperationError`` raised here never loses the record.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("EventLog is closed")
            self._records.append(record)
            self._write_file(record)
            line = self._aggregator.feed(record)
            if line is not None:
                self._write_console(line)

    # -- Query -----------------------------------------------------------------

    def records(self) -> list[AnyEvent]:
        """Snapshot of all records appended so far, in append order."""
        with self._lock:
            return list(self._records)

    def open_operations(self) -> list[PendingOperation]:
        return self._aggregator.open_operations()

    def __len__(self) -> int:
        return len(self._records)

    # -- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        """Report open operations, flush and release both sinks.  Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for op in self._aggregator.open_operations():
                self._write_console(
                    SummaryLine(
                        Severity.WARN,
                        f"operation still open at shutdown: task {op.key.task_id} #{op.key.cmd_index} "
                        f"{op.kind} {op.descriptor}",
                        key=op.key,
                    )
                )
            # Removing a loguru handler flushes and closes its file.
            if self._file_handler is not None:
                logger.remove(self._file_handler)
                self._file_handler = None
            logger.remove(self._console_handler)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> EventLog:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
