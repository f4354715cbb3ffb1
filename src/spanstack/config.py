# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Spanstack configuration loaded from SPANSTACK_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class SpanstackSettings(BaseSettings):
    """Runtime settings.

    Attributes:
        db_path: SQLite file holding trace headers and spans.
        export_dir: Directory receiving JSON trace exports.
        enabled: Master switch. When False, ``TraceManager.trace()`` binds no
            recorder and every ambient span runs unwrapped.
        log_level: Python logging level name for the ``spanstack`` logger.
        debug: Install a stderr handler and log at DEBUG.
    """

    db_path: str = ".spanstack.db"
    export_dir: str = "var/trace"
    enabled: bool = True
    log_level: str = "INFO"
    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="SPANSTACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_settings: SpanstackSettings | None = None


def get_settings() -> SpanstackSettings:
    """Return the global settings singleton (lazy-initialized from env)."""
    global _settings
    if _settings is None:
        _settings = SpanstackSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings singleton. Primarily useful for testing."""
    global _settings
    _settings = None
