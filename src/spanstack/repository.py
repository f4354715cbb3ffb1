# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Typed read/write operations over a :class:`SpanStore`."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from spanstack.models import FetchResult, SpanRecord, TraceHeader
from spanstack.store import SpanStore

logger = logging.getLogger("spanstack")


def encode_meta(meta: Mapping[str, Any] | None) -> str | None:
    """Encode span meta as UTF-8 JSON; empty or unencodable meta becomes None."""
    if not meta:
        return None
    try:
        return json.dumps(dict(meta), ensure_ascii=False)
    except (TypeError, ValueError):
        logger.debug("Dropping non-JSON-serializable span meta", exc_info=True)
        return None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class TraceRepository:
    """Read/write access to persisted traces.

    Args:
        store: The underlying SpanStore.
    """

    def __init__(self, store: SpanStore) -> None:
        self._store = store

    @property
    def store(self) -> SpanStore:
        return self._store

    def ensure_header(self, trace_id: str, view: str | None) -> None:
        """Create the header row, or refresh ``view`` and the timestamp if it exists."""
        self._store.upsert_header(trace_id, view, _utc_now())

    def insert_span(
        self,
        trace_id: str,
        span_id: str,
        parent_span_id: str | None,
        sequence: int,
        name: str,
        started_at_ms: int,
        ended_at_ms: int,
        duration_ms: int,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        """Persist one completed span. Re-inserting the same span id overwrites it."""
        self._store.upsert_span(
            {
                "trace_id": trace_id,
                "span_id": span_id,
                "parent_span_id": parent_span_id,
                "sequence": sequence,
                "name": name,
                "started_at_ms": started_at_ms,
                "ended_at_ms": ended_at_ms,
                "duration_ms": duration_ms,
                "meta_json": encode_meta(meta),
            }
        )

    def finish_trace(self, trace_id: str, total_ms: int) -> bool:
        """Stamp the total duration on a trace header."""
        return self._store.set_total_ms(trace_id, total_ms)

    def fetch(self, trace_id: str) -> FetchResult:
        """Return the header and sequence-ordered spans of a trace.

        An unknown trace id yields ``FetchResult(None, [])``. Spans whose
        header write was lost are still returned, with ``header=None``.
        """
        row = self._store.get_header(trace_id)
        spans = [SpanRecord(**span) for span in self._store.list_spans(trace_id)]
        if row is None and spans:
            logger.warning("Trace %s has %d spans but no header", trace_id, len(spans))
        header = TraceHeader(**row) if row is not None else None
        return FetchResult(header=header, spans=spans)
