# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Spanstack — nested span recording for multi-stage request pipelines.

Records what happened during one logical request (chat handling,
knowledge-base lookup, AI-provider calls) as a tree of timed spans,
persists it to SQLite, and rebuilds display trees from the stored rows.

Quick Start:
    from spanstack import get_manager, run_with_span

    with get_manager().trace("chat"):
        answer = run_with_span("ai.call", lambda: gateway.chat(prompt), {"model": "gpt-4"})

Public API:
    - TraceManager / get_manager: start and finish traces
    - SpanRecorder: per-request span stack, ``span(name, work, meta)``
    - run_with_span / use_recorder: ambient, request-scoped recording
    - observe: decorator recording calls as spans
    - TraceRepository / SpanStore: persistence and ``fetch``
    - build_tree / TreeMode: flow, prefix and debug reconstructions
    - init: configure the SDK
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    "init",
    "observe",
    "get_manager",
    "TraceManager",
    "SpanRecorder",
    "run_with_span",
    "arun_with_span",
    "use_recorder",
    "get_current_recorder",
    "TraceRepository",
    "SpanStore",
    "FetchResult",
    "build_tree",
    "TreeMode",
    "LabelMapper",
    "map_label",
    "TraceExporter",
    "__version__",
]

import logging
import os

from spanstack.config import get_settings, reset_settings
from spanstack.context import arun_with_span, get_current_recorder, run_with_span, use_recorder
from spanstack.decorator import observe
from spanstack.export import TraceExporter
from spanstack.labels import LabelMapper, map_label
from spanstack.manager import TraceManager, get_manager, reset_manager
from spanstack.models import FetchResult
from spanstack.recorder import SpanRecorder
from spanstack.repository import TraceRepository
from spanstack.store import SpanStore, reset_store
from spanstack.tree import TreeMode, build_tree


def init(
    *,
    db_path: str | None = None,
    export_dir: str | None = None,
    enabled: bool | None = None,
    log_level: str | None = None,
    debug: bool | None = None,
) -> None:
    """Initialize spanstack with custom configuration.

    Any provided arguments override the corresponding SPANSTACK_* environment
    variables. Call this before the first trace starts.

    Args:
        db_path: SQLite file for traces (overrides SPANSTACK_DB_PATH).
        export_dir: JSON export directory (overrides SPANSTACK_EXPORT_DIR).
        enabled: Enable/disable tracing (overrides SPANSTACK_ENABLED).
        log_level: Logging level name (overrides SPANSTACK_LOG_LEVEL).
        debug: Enable debug logging (overrides SPANSTACK_DEBUG).
    """
    if db_path is not None:
        os.environ["SPANSTACK_DB_PATH"] = db_path
    if export_dir is not None:
        os.environ["SPANSTACK_EXPORT_DIR"] = export_dir
    if enabled is not None:
        os.environ["SPANSTACK_ENABLED"] = str(enabled).lower()
    if log_level is not None:
        os.environ["SPANSTACK_LOG_LEVEL"] = log_level
    if debug is not None:
        os.environ["SPANSTACK_DEBUG"] = str(debug).lower()

    # Reset singletons so they pick up new env vars
    reset_settings()
    reset_store()
    reset_manager()

    settings = get_settings()
    log_level_value = (
        logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    )
    spanstack_logger = logging.getLogger("spanstack")
    spanstack_logger.setLevel(log_level_value)

    if settings.debug and not spanstack_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[spanstack] %(levelname)s %(name)s: %(message)s")
        )
        spanstack_logger.addHandler(handler)
