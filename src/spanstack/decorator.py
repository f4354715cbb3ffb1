# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""@observe decorator — record a function call as a span of the ambient recorder.

Works on sync and async functions. Outside a traced request the decorated
function runs exactly as undecorated.

Usage:
    @observe(name="kb.match")
    def find_matches(query: str) -> list[Match]:
        ...

    @observe(name="adapter.openai.handleRequest", meta={"provider": "openai"})
    async def handle_request(request: ChatRequest) -> ChatResponse:
        ...
"""

from __future__ import annotations

import functools
import inspect
import reprlib
from collections.abc import Mapping
from typing import Any, Callable, TypeVar, overload

from spanstack.context import arun_with_span, run_with_span

F = TypeVar("F", bound=Callable[..., Any])

_META_REPR = reprlib.Repr()
_META_REPR.maxstring = 256
_META_REPR.maxother = 256


def _meta_value(value: Any) -> str:
    try:
        return _META_REPR.repr(value)
    except Exception:
        return f"<{type(value).__name__} without repr>"


def _signature_of(func: Callable) -> inspect.Signature | None:
    """Signature of ``func``, or None for callables without one (most builtins)."""
    try:
        return inspect.signature(func)
    except (TypeError, ValueError):
        return None


def _capture_arguments(
    signature: inspect.Signature | None, args: tuple, kwargs: dict
) -> dict[str, str]:
    """Bounded reprs of the call arguments, keyed ``arg.<name>``.

    Arguments that cannot be bound by name are keyed by position.
    """
    if signature is not None:
        try:
            bound = signature.bind(*args, **kwargs)
        except TypeError:
            pass
        else:
            bound.apply_defaults()
            return {
                f"arg.{param}": _meta_value(value)
                for param, value in bound.arguments.items()
                if param not in ("self", "cls")
            }

    captured = {f"arg.{i}": _meta_value(arg) for i, arg in enumerate(args)}
    captured.update((f"arg.{k}", _meta_value(v)) for k, v in kwargs.items())
    return captured


def _span_name_for(func: Callable) -> str:
    module = getattr(func, "__module__", None)
    qualname = getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))
    if not module or module == "__main__":
        return qualname
    return f"{module}.{qualname}"


def _call_meta(
    signature: inspect.Signature | None,
    static_meta: Mapping[str, Any] | None,
    capture_args: bool,
    args: tuple,
    kwargs: dict,
) -> dict[str, Any]:
    meta = dict(static_meta or {})
    if capture_args:
        meta.update(_capture_arguments(signature, args, kwargs))
    return meta


@overload
def observe(func: F) -> F: ...


@overload
def observe(
    func: None = None,
    *,
    name: str | None = None,
    meta: Mapping[str, Any] | None = None,
    capture_args: bool = False,
) -> Callable[[F], F]: ...


def observe(
    func: F | None = None,
    *,
    name: str | None = None,
    meta: Mapping[str, Any] | None = None,
    capture_args: bool = False,
) -> F | Callable[[F], F]:
    """Decorator recording each call of a function as a span.

    Args:
        func: Set when applied bare, as ``@observe``.
        name: Span name. Defaults to "module.qualname".
        meta: Static meta attached to every span of this function.
        capture_args: Add bounded reprs of the call arguments to the meta.

    Returns:
        A wrapper with the same call contract as the original.
    """

    def decorator(fn: F) -> F:
        span_name = name or _span_name_for(fn)
        signature = _signature_of(fn) if capture_args else None

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                call_meta = _call_meta(signature, meta, capture_args, args, kwargs)
                return await arun_with_span(span_name, lambda: fn(*args, **kwargs), call_meta)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            call_meta = _call_meta(signature, meta, capture_args, args, kwargs)
            return run_with_span(span_name, lambda: fn(*args, **kwargs), call_meta)

        return wrapper  # type: ignore[return-value]

    if func is not None:
        return decorator(func)
    return decorator
