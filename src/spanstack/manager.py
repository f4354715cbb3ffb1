# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""TraceManager — starts and finishes traces.

Usage:
    manager = TraceManager(repository)
    with manager.trace("chat") as recorder:
        run_with_span("support_chat.ask", lambda: service.ask(message))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import Generator

from spanstack._internal.clock import wall_clock_ms
from spanstack.config import get_settings
from spanstack.context import use_recorder
from spanstack.models import new_id
from spanstack.recorder import SpanRecorder
from spanstack.repository import TraceRepository
from spanstack.store import get_store

logger = logging.getLogger("spanstack")


class TraceManager:
    """Creates recorders bound to fresh trace ids and finalizes them.

    Header writes are best-effort: a storage failure is logged and the
    recorder is still returned, so tracing never breaks the traced request.

    Args:
        repository: Repository used for headers and handed to every recorder.
        clock: Millisecond clock, wall clock by default.
    """

    def __init__(
        self,
        repository: TraceRepository,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self._repository = repository
        self._clock = clock

    @property
    def repository(self) -> TraceRepository:
        return self._repository

    def start(self, view: str) -> SpanRecorder:
        """Create a new trace header and return a recorder bound to it."""
        trace_id = new_id()
        try:
            self._repository.ensure_header(trace_id, view)
        except Exception:
            logger.warning("Failed to write header for trace %s", trace_id, exc_info=True)
        logger.debug("Started trace %s (view=%s)", trace_id, view)
        return SpanRecorder(trace_id, view, self._repository, clock=self._clock)

    def finish(self, recorder: SpanRecorder) -> None:
        """Stamp the total duration on the trace header.

        Spans are already persisted as they complete, so skipping this call
        loses only ``total_ms``. Calling it twice is a no-op.
        """
        if recorder.finished:
            return
        recorder.finished = True
        total_ms = max(0, self._clock() - recorder.started_at_ms)
        try:
            self._repository.finish_trace(recorder.trace_id, total_ms)
        except Exception:
            logger.warning(
                "Failed to finalize trace %s", recorder.trace_id, exc_info=True
            )
            return
        logger.debug(
            "Finished trace %s: %d spans in %d ms",
            recorder.trace_id,
            recorder.span_count,
            total_ms,
        )

    @contextmanager
    def trace(self, view: str) -> Generator[SpanRecorder | None, None, None]:
        """Scope one traced request.

        Starts a trace, binds its recorder as the ambient recorder, and on
        exit unbinds and finishes it. Yields None without binding anything
        when tracing is disabled in settings.
        """
        if not get_settings().enabled:
            yield None
            return

        recorder = self.start(view)
        try:
            with use_recorder(recorder):
                yield recorder
        finally:
            self.finish(recorder)


# ── Module-level singleton ────────────────────────────────────────────

_manager: TraceManager | None = None


def get_manager() -> TraceManager:
    """Return the global TraceManager over the default store."""
    global _manager
    if _manager is None:
        _manager = TraceManager(TraceRepository(get_store()))
    return _manager


def reset_manager() -> None:
    """Reset the global manager singleton. Primarily for testing."""
    global _manager
    _manager = None
