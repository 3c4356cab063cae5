"""Shared fixtures: fixed timestamps and canned event sequences.

Everything here is in-memory or under ``tmp_path`` -- no runtime, no network.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger

from execlog import log as log_module
from execlog.models import (
    CommandExecuted,
    CommandStarted,
    CommandStdErr,
    CommandStdOut,
    TransferExecuted,
    TransferStarted,
)
from execlog.settings import get_settings

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Timestamp ``seconds`` after the fixed test epoch."""
    return T0 + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate tests from EXECLOG_* variables in the calling environment."""
    for name in list(os.environ):
        if name.startswith("EXECLOG_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def pristine_loguru():
    """Start from loguru's stock setup and put a plain stderr handler back afterwards."""
    log_module._configured = False
    yield
    logger.remove()
    logger.add(sys.stderr)
    log_module._configured = False


@pytest.fixture
def hashcat_failure() -> list:
    """A command that fails with an unrecognized option (exit status -1)."""
    return [
        CommandStarted(
            timestamp=at(0),
            agreement_id="A",
            task_id="1",
            cmd_index=3,
            entry_point="/bin/sh",
            args=["-c", "hashcat --keeyspace -a 3 ?a?a?a"],
        ),
        CommandStdErr(
            timestamp=at(1),
            agreement_id="A",
            task_id="1",
            cmd_index=3,
            chunk=b"hashcat: unrecognized option '--keeyspace'\n",
        ),
        CommandExecuted(
            timestamp=at(2),
            agreement_id="A",
            task_id="1",
            cmd_index=3,
            success=False,
            exit_message="exited with code 255",
        ),
    ]


@pytest.fixture
def hashcat_success() -> list:
    return [
        CommandStarted(
            timestamp=at(0),
            agreement_id="A",
            task_id="1",
            cmd_index=3,
            entry_point="/bin/sh",
            args=["-c", "hashcat --keyspace -a 3 ?a?a?a"],
        ),
        CommandStdOut(timestamp=at(1), agreement_id="A", task_id="1", cmd_index=3, chunk=b"9025"),
        CommandExecuted(timestamp=at(2), agreement_id="A", task_id="1", cmd_index=3, success=True),
    ]


@pytest.fixture
def keyspace_upload() -> list:
    return [
        TransferStarted(
            timestamp=at(0),
            agreement_id="A",
            task_id="1",
            cmd_index=1,
            source="gftp://X/abc",
            target="container:/golem/work/keyspace.sh",
        ),
        TransferExecuted(timestamp=at(1), agreement_id="A", task_id="1", cmd_index=1, success=True),
    ]
