# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""JSON file export of one trace for offline inspection.

The export holds the header fields, the raw spans in sequence order, and a
linear chain (``nodes`` + ``edges`` in call order) that
:func:`spanstack.tree.build_tree` can read back.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from spanstack.models import SpanRecord
from spanstack.repository import TraceRepository

logger = logging.getLogger("spanstack")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


class ExportResult(BaseModel):
    """Outcome of an export. Failures are reported, never raised."""

    ok: bool
    trace_id: str | None = None
    file: str | None = None
    path: str | None = None
    error: str | None = None


def to_linear_tree(spans: list[SpanRecord]) -> dict[str, list[dict[str, Any]]]:
    """Chain spans in sequence order: each span gets an edge from its predecessor."""
    nodes: list[dict[str, Any]] = []
    edges: list[dict[str, str]] = []
    prev_name: str | None = None
    for span in spans:
        if not span.name:
            continue
        nodes.append({"id": span.name, "duration_ms": span.duration_ms, "meta": span.meta})
        if prev_name is not None:
            edges.append({"from": prev_name, "to": span.name})
        prev_name = span.name
    return {"nodes": nodes, "edges": edges}


class TraceExporter:
    """Writes traces to ``<export_dir>/<view>_Trace_Tree_<timestamp>.json``.

    Args:
        repository: Source of trace headers and spans.
        export_dir: Target directory, created on first export.
    """

    def __init__(self, repository: TraceRepository, export_dir: str | Path) -> None:
        self._repository = repository
        self._export_dir = Path(export_dir)

    def build_payload(self, trace_id: str, view: str) -> dict[str, Any] | None:
        """Return the export document, or None if the trace is unknown."""
        header, spans = self._repository.fetch(trace_id)
        if header is None:
            return None
        spans = sorted(spans, key=lambda s: s.sequence)
        return {
            "view": view,
            "trace_id": trace_id,
            "total_ms": header.total_ms or 0,
            "exported_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "spans": [
                {
                    "sequence": s.sequence,
                    "name": s.name,
                    "duration_ms": s.duration_ms,
                    "meta": s.meta,
                }
                for s in spans
            ],
            "tree": to_linear_tree(spans),
        }

    def export_to_json_file(self, trace_id: str, view: str = "unknown") -> ExportResult:
        trace_id = (trace_id or "").strip()
        view = (view or "").strip() or "unknown"
        if not trace_id:
            return ExportResult(ok=False, error="trace_id missing")

        try:
            payload = self.build_payload(trace_id, view)
        except Exception as exc:
            logger.warning("Failed to read trace %s for export", trace_id, exc_info=True)
            return ExportResult(ok=False, trace_id=trace_id, error=f"read failed: {exc}")
        if payload is None:
            return ExportResult(ok=False, trace_id=trace_id, error="trace not found")

        safe_view = _UNSAFE_CHARS.sub("_", view) or "unknown"
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        path = self._export_dir / f"{safe_view}_Trace_Tree_{stamp}.json"
        try:
            self._export_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            logger.warning("Failed to write trace export %s", path, exc_info=True)
            return ExportResult(ok=False, trace_id=trace_id, error=f"write failed: {exc}")

        logger.info("Exported trace %s to %s", trace_id, path)
        return ExportResult(ok=True, trace_id=trace_id, file=path.name, path=str(path))
