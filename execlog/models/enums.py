"""Shared enumerations used across the event log."""

from __future__ import annotations

from enum import StrEnum

# -- Severity ----------------------------------------------------------------


class Severity(StrEnum):
    """Severity tag carried by every event record."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"

    @property
    def loguru_level(self) -> str:
        """Name of the matching loguru level."""
        return "WARNING" if self is Severity.WARN else self.value


# -- Events ------------------------------------------------------------------


class EventKind(StrEnum):
    """Variant tags of the event record union, as written to the log."""

    # Agreement
    AGREEMENT_CREATED = "AgreementCreated"

    # Command
    COMMAND_STARTED = "CommandStarted"
    COMMAND_STDOUT = "CommandStdOut"
    COMMAND_STDERR = "CommandStdErr"
    COMMAND_EXECUTED = "CommandExecuted"

    # Transfer
    TRANSFER_STARTED = "TransferStarted"
    TRANSFER_EXECUTED = "TransferExecuted"

    # Download
    DOWNLOAD_STARTED = "DownloadStarted"
    DOWNLOAD_FINISHED = "DownloadFinished"

    # Fallback
    UNKNOWN = "Unknown"


class OperationKind(StrEnum):
    """Logical unit of work tracked by the summary aggregator."""

    RUN = "run"
    TRANSFER = "transfer"


class CaptureMode(StrEnum):
    """How the remote side captures a command output stream."""

    STREAM = "stream"
    AT_END = "at_end"
