# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""SpanRecorder — the per-request span stack.

One recorder records one trace. It owns a sequence counter and a LIFO stack
of the span ids currently open. ``span(name, work)`` pushes a new span,
runs ``work``, and on every exit path pops it and persists it through the
:class:`TraceRepository`.

Usage:
    recorder = manager.start("chat")
    answer = recorder.span("ai.call", lambda: client.chat(prompt), {"model": "gpt-4"})
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from spanstack._internal.clock import clamp_interval, wall_clock_ms
from spanstack.models import new_id

if TYPE_CHECKING:
    from spanstack.repository import TraceRepository

logger = logging.getLogger("spanstack")

T = TypeVar("T")


@dataclass
class _OpenSpan:
    span_id: str
    parent_span_id: str | None
    sequence: int
    name: str
    started_at_ms: int
    meta: dict[str, Any] = field(default_factory=dict)


class SpanRecorder:
    """Records the nested spans of one logical request.

    Not safe for concurrent use: nesting relies on strict LIFO order, so
    parallel branches of one request need their own recorder.

    Args:
        trace_id: Id of the trace every span is attributed to.
        view: Label of the entry point that produced the trace.
        repository: Where completed spans are persisted.
        clock: Millisecond clock, wall clock by default.
    """

    def __init__(
        self,
        trace_id: str,
        view: str,
        repository: TraceRepository,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.trace_id = trace_id
        self.view = view
        self._repository = repository
        self._clock = clock
        self._sequence = 0
        self._stack: list[str] = []
        self.started_at_ms: int = clock()
        self.finished = False
        self.persist_failures = 0

    # ── Introspection ─────────────────────────────────────────────────

    @property
    def depth(self) -> int:
        """Number of spans currently open."""
        return len(self._stack)

    @property
    def current_span_id(self) -> str | None:
        """Id of the innermost open span, or None."""
        return self._stack[-1] if self._stack else None

    @property
    def span_count(self) -> int:
        """Number of spans started so far (equals the last sequence number)."""
        return self._sequence

    # ── Recording ─────────────────────────────────────────────────────

    def span(
        self,
        name: str,
        work: Callable[[], T],
        meta: Mapping[str, Any] | None = None,
    ) -> T:
        """Run ``work`` inside a new span and return its result.

        Spans started inside ``work`` become children of this span. The span
        is persisted whether ``work`` returns or raises; its exception is
        re-raised unchanged.
        """
        opened = self._push(name, meta)
        try:
            return work()
        finally:
            self._close(opened)

    async def aspan(
        self,
        name: str,
        work: Callable[[], Awaitable[T]],
        meta: Mapping[str, Any] | None = None,
    ) -> T:
        """Awaitable counterpart of :meth:`span` for coroutine work."""
        opened = self._push(name, meta)
        try:
            return await work()
        finally:
            self._close(opened)

    def _push(self, name: str, meta: Mapping[str, Any] | None) -> _OpenSpan:
        self._sequence += 1
        opened = _OpenSpan(
            span_id=new_id(),
            parent_span_id=self.current_span_id,
            sequence=self._sequence,
            name=name,
            started_at_ms=self._clock(),
            meta=dict(meta or {}),
        )
        self._stack.append(opened.span_id)
        return opened

    def _close(self, opened: _OpenSpan) -> None:
        # Never raises: a bookkeeping failure must not replace work()'s outcome.
        if self._stack and self._stack[-1] == opened.span_id:
            self._stack.pop()
        elif opened.span_id in self._stack:
            logger.warning(
                "Span %s (%s) closed out of order in trace %s",
                opened.name,
                opened.span_id,
                self.trace_id,
            )
            self._stack.remove(opened.span_id)

        try:
            ended_at_ms, duration_ms = clamp_interval(opened.started_at_ms, self._clock())
            self._repository.insert_span(
                trace_id=self.trace_id,
                span_id=opened.span_id,
                parent_span_id=opened.parent_span_id,
                sequence=opened.sequence,
                name=opened.name,
                started_at_ms=opened.started_at_ms,
                ended_at_ms=ended_at_ms,
                duration_ms=duration_ms,
                meta=opened.meta,
            )
        except Exception:
            self.persist_failures += 1
            logger.warning(
                "Failed to persist span %s (seq %d) of trace %s",
                opened.name,
                opened.sequence,
                self.trace_id,
                exc_info=True,
            )

    def __repr__(self) -> str:
        return (
            f"SpanRecorder(trace_id={self.trace_id[:8]}..., view={self.view!r}, "
            f"spans={self._sequence}, depth={self.depth})"
        )
