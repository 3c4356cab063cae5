"""Query results and operation identity."""

from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from execlog.exit_status import parse_exit_code, possibly_negative


class OperationKey(NamedTuple):
    """Identifies one command or transfer within an agreement's task."""

    agreement_id: str
    task_id: str
    cmd_index: int

    def __str__(self) -> str:
        return f"{self.agreement_id}/{self.task_id}#{self.cmd_index}"


class CommandOutcome(BaseModel):
    """What a remote command printed and how it finished."""

    model_config = ConfigDict(frozen=True)

    agreement_id: str
    task_id: str
    cmd_index: int
    entry_point: str
    args: list[str] = Field(default_factory=list)
    captured_stdout: bytes = b""
    captured_stderr: bytes = b""
    success: bool = False
    exit_message: str | None = None

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.agreement_id, self.task_id, self.cmd_index)

    @property
    def exit_code(self) -> int | None:
        """Exit status parsed from ``exit_message``, if it carries one."""
        return parse_exit_code(self.exit_message)

    @property
    def possibly_negative_exit(self) -> bool:
        """True when the exit status may be a negative value read as unsigned.

        An application that exits with ``-1`` is reported as ``255``; any
        status above 127 should not be taken as a literal exit code.
        """
        code = self.exit_code
        return code is not None and possibly_negative(code)


class TransferOutcome(BaseModel):
    """Source, target and result of a file transfer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    agreement_id: str
    task_id: str
    cmd_index: int
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    success: bool = False

    @property
    def key(self) -> OperationKey:
        return OperationKey(self.agreement_id, self.task_id, self.cmd_index)
