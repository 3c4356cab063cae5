"""Event record models.

One frozen pydantic model per lifecycle event emitted by the requestor
runtime.  The ``kind`` field is the variant tag written to the log and the
discriminator of the ``EventRecord`` union.  ``UnknownEvent`` sits outside the
union: it is what log readers produce for lines they cannot map to a known
variant.
"""

from __future__ import annotations

import shlex
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from execlog.models.enums import CaptureMode, EventKind, Severity
from execlog.models.outcome import OperationKey


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EventBase(BaseModel):
    """Fields shared by every known event variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime = Field(default_factory=utcnow)
    severity: Severity = Severity.INFO
    agreement_id: str
    task_id: str

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="before")
    @classmethod
    def _fill_severity(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("severity") is None:
            data = {**data, "severity": cls.default_severity(data)}
        return data

    @classmethod
    def default_severity(cls, data: dict[str, Any]) -> Severity:
        """Severity used when the emitter does not set one."""
        return Severity.INFO


class _OperationEvent(_EventBase):
    cmd_index: int

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.agreement_id, self.task_id, self.cmd_index)


# -- Agreement ---------------------------------------------------------------


class AgreementCreated(_EventBase):
    """An agreement with a provider was signed; carries the provider identity."""

    kind: Literal[EventKind.AGREEMENT_CREATED] = EventKind.AGREEMENT_CREATED
    task_id: str = ""
    provider_id: str
    provider_name: str


# -- Command -----------------------------------------------------------------


class CommandStarted(_OperationEvent):
    kind: Literal[EventKind.COMMAND_STARTED] = EventKind.COMMAND_STARTED
    entry_point: str
    args: list[str] = Field(default_factory=list)
    capture: dict[str, CaptureMode] | None = None

    @property
    def command_line(self) -> str:
        """Shell-quoted rendering of the entry point and its arguments."""
        return shlex.join([self.entry_point, *self.args])


class CommandStdOut(_OperationEvent):
    kind: Literal[EventKind.COMMAND_STDOUT] = EventKind.COMMAND_STDOUT
    chunk: bytes

    @classmethod
    def default_severity(cls, data: dict[str, Any]) -> Severity:
        return Severity.DEBUG


class CommandStdErr(_OperationEvent):
    kind: Literal[EventKind.COMMAND_STDERR] = EventKind.COMMAND_STDERR
    chunk: bytes

    @classmethod
    def default_severity(cls, data: dict[str, Any]) -> Severity:
        return Severity.DEBUG


class CommandExecuted(_OperationEvent):
    kind: Literal[EventKind.COMMAND_EXECUTED] = EventKind.COMMAND_EXECUTED
    success: bool
    exit_message: str | None = None

    @classmethod
    def default_severity(cls, data: dict[str, Any]) -> Severity:
        return Severity.INFO if data.get("success") else Severity.WARN


# -- Transfer ----------------------------------------------------------------


class TransferStarted(_OperationEvent):
    """A file transfer between two URIs, e.g. ``gftp://...`` to ``container:/...``."""

    kind: Literal[EventKind.TRANSFER_STARTED] = EventKind.TRANSFER_STARTED
    source: str = Field(alias="from")
    target: str = Field(alias="to")


class TransferExecuted(_OperationEvent):
    kind: Literal[EventKind.TRANSFER_EXECUTED] = EventKind.TRANSFER_EXECUTED
    success: bool

    @classmethod
    def default_severity(cls, data: dict[str, Any]) -> Severity:
        return Severity.INFO if data.get("success") else Severity.WARN


# -- Download ----------------------------------------------------------------


class DownloadStarted(_EventBase):
    kind: Literal[EventKind.DOWNLOAD_STARTED] = EventKind.DOWNLOAD_STARTED
    path: str


class DownloadFinished(_EventBase):
    kind: Literal[EventKind.DOWNLOAD_FINISHED] = EventKind.DOWNLOAD_FINISHED
    path: str


# -- Fallback ----------------------------------------------------------------


class UnknownEvent(BaseModel):
    """A log line that does not map to any known variant.

    Kept verbatim so that newer emitters never break reading a log.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[EventKind.UNKNOWN] = EventKind.UNKNOWN
    raw: str
    timestamp: datetime | None = None
    severity: Severity | None = None


EventRecord = Annotated[
    AgreementCreated
    | CommandStarted
    | CommandStdOut
    | CommandStdErr
    | CommandExecuted
    | TransferStarted
    | TransferExecuted
    | DownloadStarted
    | DownloadFinished,
    Field(discriminator="kind"),
]
"""Tagged union of every known event variant."""

AnyEvent = EventRecord | UnknownEvent

EVENT_ADAPTER: TypeAdapter[EventRecord] = TypeAdapter(EventRecord)

EVENT_TYPES: dict[str, type[_EventBase]] = {
    model.model_fields["kind"].default.value: model
    for model in (
        AgreementCreated,
        CommandStarted,
        CommandStdOut,
        CommandStdErr,
        CommandExecuted,
        TransferStarted,
        TransferExecuted,
        DownloadStarted,
        DownloadFinished,
    )
}
"""Variant tag -> model class."""
