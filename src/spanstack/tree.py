# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Rebuild display trees from a flat, sequence-ordered span list.

Three reconstructions are available:

- ``flow``: the call tree, from explicit ``parent_span_id`` links.
- ``prefix``: spans grouped by the dot-separated segments of their names
  (``adapter.gemini.handleRequest`` sits under ``adapter`` → ``gemini``),
  answering "what happened under ``adapter.*``" even without parent links.
- ``debug``: one synthetic root with every span as a direct child.

All sorts are stable: spans with equal sequence keep their input order.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from spanstack.labels import LabelMapper, map_label
from spanstack.models import DisplayNode, FetchResult, SpanRecord, parse_meta

logger = logging.getLogger("spanstack")

DEBUG_ROOT_ID = "debug.spans"
DEBUG_ROOT_LABEL = "Raw spans (Debug)"


class TreeMode(str, enum.Enum):
    """Reconstruction strategy for :func:`build_tree`."""

    FLOW = "flow"
    PREFIX = "prefix"
    DEBUG = "debug"


@dataclass
class _Span:
    span_id: str | None
    parent_span_id: str | None
    sequence: int
    name: str
    duration_ms: int
    meta: dict[str, Any]


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _normalize_one(raw: Any) -> _Span:
    if isinstance(raw, SpanRecord):
        return _Span(
            span_id=raw.span_id,
            parent_span_id=raw.parent_span_id,
            sequence=raw.sequence,
            name=raw.name,
            duration_ms=raw.duration_ms,
            meta=raw.meta,
        )

    meta = raw.get("meta")
    if not isinstance(meta, Mapping):
        meta_json = raw.get("meta_json")
        meta = parse_meta(meta_json) if isinstance(meta_json, str) else {}

    name = raw.get("name")
    if name is None:
        name = raw.get("id")
    return _Span(
        span_id=raw.get("span_id") or None,
        parent_span_id=raw.get("parent_span_id") or None,
        sequence=_as_int(raw.get("sequence")),
        name=str(name if name is not None else ""),
        duration_ms=_as_int(raw.get("duration_ms")),
        meta=dict(meta),
    )


def normalize_spans(payload: Any) -> list[_Span]:
    """Extract and sequence-sort the spans of any accepted payload shape.

    Accepts a :class:`FetchResult`, a mapping with ``spans`` (falling back to
    the ``nodes`` of an exported linear tree), or an iterable of span dicts
    or :class:`SpanRecord` objects.
    """
    if isinstance(payload, FetchResult):
        raw_spans: Iterable[Any] = payload.spans
    elif isinstance(payload, Mapping):
        raw_spans = payload.get("spans") or []
        if not raw_spans:
            tree = payload.get("tree")
            nodes = payload.get("nodes")
            if nodes is None and isinstance(tree, Mapping):
                nodes = tree.get("nodes")
            raw_spans = nodes or []
    elif payload is None:
        raw_spans = []
    else:
        raw_spans = payload

    spans = [_normalize_one(s) for s in raw_spans]
    spans.sort(key=lambda s: s.sequence)
    return spans


def _to_node(span: _Span, labels: LabelMapper | None, node_id: str | None = None) -> DisplayNode:
    return DisplayNode(
        id=node_id if node_id is not None else span.name,
        label=labels.label(span.name) if labels is not None else map_label(span.name),
        duration_ms=span.duration_ms,
        meta=span.meta,
    )


# ── Flow mode ─────────────────────────────────────────────────────────


@dataclass
class _FlowEntry:
    span: _Span
    children: list[_FlowEntry] = field(default_factory=list)


def _link_flow(spans: list[_Span]) -> tuple[list[_FlowEntry], int]:
    entries = [_FlowEntry(span) for span in spans]
    by_id: dict[str, _FlowEntry] = {}
    for entry in entries:
        if entry.span.span_id is not None:
            by_id.setdefault(entry.span.span_id, entry)

    parent_of: dict[int, _FlowEntry] = {}
    roots: list[_FlowEntry] = []
    orphans = 0
    for entry in entries:
        parent_id = entry.span.parent_span_id
        if parent_id is None:
            roots.append(entry)
            continue

        parent = by_id.get(parent_id)
        # Walk the ancestors of the candidate parent; reaching the entry
        # itself means the links form a cycle.
        ancestor = parent
        while ancestor is not None and ancestor is not entry:
            ancestor = parent_of.get(id(ancestor))
        if parent is None or ancestor is entry:
            orphans += 1
            roots.append(entry)
            continue

        parent_of[id(entry)] = parent
        parent.children.append(entry)

    return roots, orphans


def _materialize_flow(entry: _FlowEntry, labels: LabelMapper | None) -> DisplayNode:
    node = _to_node(entry.span, labels, node_id=entry.span.span_id or entry.span.name)
    ordered = sorted(entry.children, key=lambda e: e.span.sequence)
    node.children = [_materialize_flow(child, labels) for child in ordered]
    return node


def count_orphans(payload: Any) -> int:
    """Count spans whose ``parent_span_id`` does not resolve within the trace."""
    _, orphans = _link_flow(normalize_spans(payload))
    return orphans


def _build_flow(spans: list[_Span], labels: LabelMapper | None = None) -> list[DisplayNode]:
    roots, orphans = _link_flow(spans)
    if orphans:
        logger.warning(
            "%d of %d spans reference an unknown parent and were promoted to roots",
            orphans,
            len(spans),
        )
    ordered = sorted(roots, key=lambda e: e.span.sequence)
    return [_materialize_flow(root, labels) for root in ordered]


# ── Prefix mode ───────────────────────────────────────────────────────


@dataclass
class _Group:
    path: str
    segment: str
    children: dict[str, _Group] = field(default_factory=dict)
    leaf: _Span | None = None


def _materialize_group(group: _Group, labels: LabelMapper | None) -> DisplayNode:
    children = [_materialize_group(child, labels) for child in group.children.values()]
    if group.leaf is not None:
        node = _to_node(group.leaf, labels)
        node.children = children
        return node
    return DisplayNode(id=group.path, label=group.segment, duration_ms=None, meta={}, children=children)


def _build_prefix(spans: list[_Span], labels: LabelMapper | None = None) -> list[DisplayNode]:
    roots: dict[str, _Group] = {}
    for span in spans:
        if not span.name:
            continue

        level = roots
        path = ""
        parts = span.name.split(".")
        for i, part in enumerate(parts):
            path = f"{path}.{part}" if path else part
            group = level.get(part)
            if group is None:
                group = level[part] = _Group(path=path, segment=part)
            if i == len(parts) - 1:
                # Duplicate names: the later span wins.
                group.leaf = span
            level = group.children

    return [_materialize_group(group, labels) for group in roots.values()]


# ── Debug mode ────────────────────────────────────────────────────────


def _build_debug(spans: list[_Span], labels: LabelMapper | None = None) -> list[DisplayNode]:
    return [
        DisplayNode(
            id=DEBUG_ROOT_ID,
            label=DEBUG_ROOT_LABEL,
            duration_ms=None,
            meta={},
            children=[_to_node(span, labels) for span in spans],
        )
    ]


# ── Public API ────────────────────────────────────────────────────────

_BUILDERS = {
    TreeMode.FLOW: _build_flow,
    TreeMode.PREFIX: _build_prefix,
    TreeMode.DEBUG: _build_debug,
}


def build_tree(
    payload: Any,
    mode: TreeMode | str = TreeMode.FLOW,
    labels: LabelMapper | None = None,
) -> list[DisplayNode]:
    """Build the display tree of one trace.

    Args:
        payload: A FetchResult, a read-API payload ``{"spans": [...]}``, or
            an iterable of span dicts / SpanRecords.
        mode: ``flow`` (parent links), ``prefix`` (name segments) or
            ``debug`` (flat).
        labels: Label mapping; the default :data:`NAME_MAP` when None.

    Returns:
        The root nodes, in sequence order.

    Raises:
        ValueError: If ``mode`` is not a known mode.
    """
    tree_mode = TreeMode(mode)
    spans = normalize_spans(payload)
    logger.debug("Building %s tree from %d spans", tree_mode.value, len(spans))
    roots = _BUILDERS[tree_mode](spans, labels)
    logger.debug("Built %d root nodes", len(roots))
    return roots
