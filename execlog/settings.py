"""Configuration loaded from EXECLOG_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from execlog.models.enums import Severity


class ExeclogSettings(BaseSettings):
    """Event log settings.

    All fields are read from environment variables with the ``EXECLOG_``
    prefix.  For example, ``EXECLOG_FILE_SINK_PATH=run.log`` maps to
    ``file_sink_path``.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXECLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Diagnostics -----------------------------------------------------------
    log_level: str = "INFO"
    """Level of execlog's own diagnostic messages (not event records)."""

    # -- Sinks -----------------------------------------------------------------
    file_sink_path: str | None = None
    """Path of the full structured log.  Console-only when unset."""

    console_min_severity: Severity = Severity.INFO
    file_min_severity: Literal["DEBUG"] = "DEBUG"
    """The full sink always keeps every record, chunks included."""

    # -- Summary ---------------------------------------------------------------
    stderr_hint_bytes: int = 512
    """Tail of stderr kept per open operation for failure summaries."""


@lru_cache(maxsize=1)
def get_settings() -> ExeclogSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests to force a re-read after
    overriding env vars.
    """
    return ExeclogSettings()
