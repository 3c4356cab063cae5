"""Unit tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from execlog.models import Severity
from execlog.settings import ExeclogSettings, get_settings


def test_defaults() -> None:
    settings = ExeclogSettings()
    assert settings.file_sink_path is None
    assert settings.console_min_severity == Severity.INFO
    assert settings.file_min_severity == "DEBUG"
    assert settings.stderr_hint_bytes == 512
    assert settings.log_level == "INFO"


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXECLOG_FILE_SINK_PATH", "/var/log/requestor.log")
    monkeypatch.setenv("EXECLOG_CONSOLE_MIN_SEVERITY", "WARN")
    monkeypatch.setenv("EXECLOG_STDERR_HINT_BYTES", "64")

    settings = get_settings()
    assert settings.file_sink_path == "/var/log/requestor.log"
    assert settings.console_min_severity == Severity.WARN
    assert settings.stderr_hint_bytes == 64


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("EXECLOG_LOG_LEVEL", "DEBUG")
    assert get_settings() is first

    get_settings.cache_clear()
    assert get_settings().log_level == "DEBUG"


def test_file_sink_cannot_drop_debug_records() -> None:
    with pytest.raises(ValidationError):
        ExeclogSettings(file_min_severity="INFO")


def test_unknown_console_severity_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ExeclogSettings(console_min_severity="ERROR")
