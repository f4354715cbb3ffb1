# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Pydantic v2 data models for trace headers, spans and display trees.

Field names match the columns of the ``traces`` and ``spans`` tables created
by :class:`spanstack.store.SpanStore`.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, NamedTuple

from pydantic import BaseModel, Field


def new_id() -> str:
    """Return a fresh lowercase UUID4 string, used for trace and span ids."""
    return str(uuid.uuid4())


def parse_meta(meta_json: str | None) -> dict[str, Any]:
    """Decode a stored meta blob, returning ``{}`` for anything unusable."""
    if not meta_json:
        return {}
    try:
        value = json.loads(meta_json)
    except (TypeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


class TraceHeader(BaseModel):
    """One row of the ``traces`` table."""

    trace_id: str
    view: str | None = None
    exported_at: str = Field(description="ISO-8601 UTC time of the last ensure")
    total_ms: int | None = Field(
        default=None,
        description="Wall-clock duration of the whole trace, set at finish",
    )


class SpanRecord(BaseModel):
    """One row of the ``spans`` table.

    A span is one recorded operation within a trace: ``ai.call``,
    ``kb.match``, ``http.client.request`` and so on.
    """

    trace_id: str
    span_id: str
    parent_span_id: str | None = None
    sequence: int
    name: str
    started_at_ms: int
    ended_at_ms: int
    duration_ms: int
    meta_json: str | None = None

    @property
    def meta(self) -> dict[str, Any]:
        """The decoded meta mapping (``{}`` when absent or malformed)."""
        return parse_meta(self.meta_json)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the read-API span shape, with meta decoded."""
        return {
            "sequence": self.sequence,
            "name": self.name,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "started_at_ms": self.started_at_ms,
            "ended_at_ms": self.ended_at_ms,
            "duration_ms": self.duration_ms,
            "meta": self.meta,
        }


class FetchResult(NamedTuple):
    """Outcome of :meth:`TraceRepository.fetch`.

    ``header`` is None when the trace is unknown. Unpacks as ``header, spans = repository.fetch(trace_id)``.
    """

    header: TraceHeader | None
    spans: list[SpanRecord]

    @property
    def found(self) -> bool:
        return self.header is not None

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON shape consumed by :func:`spanstack.tree.build_tree`."""
        header = self.header
        return {
            "trace_id": header.trace_id if header else None,
            "view": (header.view or "") if header else "",
            "exported_at": header.exported_at if header else "",
            "total_ms": header.total_ms if header else None,
            "spans": [s.to_payload() for s in self.spans],
        }


class DisplayNode(BaseModel):
    """A node of a reconstructed trace tree.

    Group nodes produced by prefix reconstruction carry ``duration_ms=None``
    and empty meta.
    """

    id: str
    label: str
    duration_ms: int | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    children: list[DisplayNode] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the plain nested-dict form of this subtree."""
        return self.model_dump(mode="json")
