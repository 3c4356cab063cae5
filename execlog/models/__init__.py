"""Data models for the event log."""

from execlog.models.enums import CaptureMode, EventKind, OperationKind, Severity
from execlog.models.events import (
    EVENT_ADAPTER,
    EVENT_TYPES,
    AgreementCreated,
    AnyEvent,
    CommandExecuted,
    CommandStarted,
    CommandStdErr,
    CommandStdOut,
    DownloadFinished,
    DownloadStarted,
    EventRecord,
    TransferExecuted,
    TransferStarted,
    UnknownEvent,
)
from execlog.models.outcome import CommandOutcome, OperationKey, TransferOutcome

__all__ = [
    "EVENT_ADAPTER",
    "EVENT_TYPES",
    # Events
    "AgreementCreated",
    "AnyEvent",
    # Enums
    "CaptureMode",
    "CommandExecuted",
    # Outcomes
    "CommandOutcome",
    "CommandStarted",
    "CommandStdErr",
    "CommandStdOut",
    "DownloadFinished",
    "DownloadStarted",
    "EventKind",
    "EventRecord",
    "OperationKey",
    "OperationKind",
    "Severity",
    "TransferExecuted",
    "TransferOutcome",
    "TransferStarted",
    "UnknownEvent",
]
