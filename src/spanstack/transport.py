# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""httpx transports that record one span per outbound request.

Usage:
    client = httpx.Client(transport=TracingTransport(httpx.HTTPTransport()))

Each request becomes an ``http.client.request`` span of the ambient
recorder, with the method and a query-free URL as meta. Without an ambient
recorder the transports pass requests straight through.
"""

from __future__ import annotations

from urllib.parse import urlsplit

import httpx

from spanstack.context import arun_with_span, run_with_span

SPAN_NAME = "http.client.request"


def safe_url(url: str | httpx.URL) -> str:
    """Reduce a URL to scheme, host, port and path.

    Query strings, fragments and userinfo are dropped; they may carry
    tokens. An explicit port and the percent-encoded path are kept as sent.
    """
    raw = str(url)
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw
    netloc = parts.netloc.rpartition("@")[2]
    if not netloc:
        return raw
    return f"{parts.scheme or 'https'}://{netloc}{parts.path}"


def _request_meta(request: httpx.Request) -> dict[str, str]:
    return {"method": request.method.upper(), "url": safe_url(request.url)}


class TracingTransport(httpx.BaseTransport):
    """Wraps a sync transport, recording each request as a span."""

    def __init__(self, inner: httpx.BaseTransport) -> None:
        self._inner = inner

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return run_with_span(
            SPAN_NAME,
            lambda: self._inner.handle_request(request),
            _request_meta(request),
        )

    def close(self) -> None:
        self._inner.close()


class AsyncTracingTransport(httpx.AsyncBaseTransport):
    """Wraps an async transport, recording each request as a span."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self._inner = inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await arun_with_span(
            SPAN_NAME,
            lambda: self._inner.handle_async_request(request),
            _request_meta(request),
        )

    async def aclose(self) -> None:
        await self._inner.aclose()
