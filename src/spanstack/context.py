# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Request-scoped ambient recorder.

Deeply nested code can add spans through ``run_with_span`` without the
recorder being threaded through every call. The slot is a
``contextvars.ContextVar``, so each thread and each asyncio task sees its
own binding and concurrent requests never share a recorder.

Usage:
    with use_recorder(recorder):
        ...
        matches = run_with_span("kb.match", lambda: kb.find(query))

When no recorder is bound, ``run_with_span`` just calls ``work()``.
"""

from __future__ import annotations

import contextvars
from collections.abc import Awaitable, Callable, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generator, TypeVar

if TYPE_CHECKING:
    from spanstack.recorder import SpanRecorder

T = TypeVar("T")

_recorder_var: contextvars.ContextVar[SpanRecorder | None] = contextvars.ContextVar(
    "spanstack_recorder", default=None
)


def get_current_recorder() -> SpanRecorder | None:
    """Return the recorder bound to this context, or None."""
    return _recorder_var.get()


def set_current_recorder(
    recorder: SpanRecorder | None,
) -> contextvars.Token[SpanRecorder | None]:
    """Bind ``recorder`` and return the token that restores the previous binding."""
    return _recorder_var.set(recorder)


def reset_current_recorder(token: contextvars.Token[SpanRecorder | None]) -> None:
    _recorder_var.reset(token)


@contextmanager
def use_recorder(recorder: SpanRecorder | None) -> Generator[SpanRecorder | None, None, None]:
    """Bind ``recorder`` for the duration of the block.

    The previous binding is restored on exit, including on exceptions.
    """
    token = _recorder_var.set(recorder)
    try:
        yield recorder
    finally:
        _recorder_var.reset(token)


def run_with_span(
    name: str,
    work: Callable[[], T],
    meta: Mapping[str, Any] | None = None,
) -> T:
    """Run ``work`` as a span of the current recorder, or unwrapped if there is none."""
    recorder = _recorder_var.get()
    if recorder is None:
        return work()
    return recorder.span(name, work, meta)


async def arun_with_span(
    name: str,
    work: Callable[[], Awaitable[T]],
    meta: Mapping[str, Any] | None = None,
) -> T:
    """Awaitable counterpart of :func:`run_with_span`."""
    recorder = _recorder_var.get()
    if recorder is None:
        return await work()
    return await recorder.aspan(name, work, meta)


def clear_context() -> None:
    """Unbind any recorder. Primarily for testing."""
    _recorder_var.set(None)
