# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for flow, prefix and debug trace reconstruction."""

import pytest

from spanstack.labels import LabelMapper
from spanstack.tree import DEBUG_ROOT_ID, TreeMode, build_tree, count_orphans


def _span(span_id, seq, name=None, parent=None, **extra):
    span = {"span_id": span_id, "parent_span_id": parent, "sequence": seq, "name": name if name is not None else span_id}
    span.update(extra)
    return span


# ── Flow mode ─────────────────────────────────────────────────────────


def test_flow_parent_links():
    payload = {"spans": [_span("a", 1), _span("b", 2, parent="a"), _span("c", 3, parent="a")]}

    roots = build_tree(payload, mode="flow")

    assert len(roots) == 1
    assert roots[0].id == "a"
    assert [child.id for child in roots[0].children] == ["b", "c"]


def test_flow_is_default_mode(sample_spans):
    roots = build_tree(sample_spans)

    assert [r.id for r in roots] == ["a"]
    assert roots[0].label == "SupportChatService::ask"
    assert roots[0].duration_ms == 30
    assert roots[0].meta == {"session": "s1"}
    assert roots[0].children[1].meta == {"model": "gpt-4"}


def test_flow_resorts_unsorted_input():
    payload = {"spans": [_span("c", 3, parent="a"), _span("b", 2, parent="a"), _span("a", 1)]}

    roots = build_tree(payload, mode=TreeMode.FLOW)

    assert [child.id for child in roots[0].children] == ["b", "c"]


def test_flow_deep_nesting():
    payload = {"spans": [_span("a", 1), _span("b", 2, parent="a"), _span("c", 3, parent="b"), _span("d", 4)]}

    roots = build_tree(payload)

    assert [r.id for r in roots] == ["a", "d"]
    assert roots[0].children[0].children[0].id == "c"


def test_flow_equal_sequence_keeps_input_order():
    payload = {"spans": [_span("a", 1), _span("x", 2, parent="a"), _span("y", 2, parent="a"), _span("z", 2, parent="a")]}

    roots = build_tree(payload)

    assert [child.id for child in roots[0].children] == ["x", "y", "z"]


def test_flow_orphan_becomes_root_and_is_counted(caplog):
    payload = {"spans": [_span("a", 1), _span("b", 2, parent="missing")]}

    with caplog.at_level("WARNING", logger="spanstack"):
        roots = build_tree(payload)

    assert [r.id for r in roots] == ["a", "b"]
    assert count_orphans(payload) == 1
    assert "unknown parent" in caplog.text


def test_flow_cyclic_links_do_not_loop():
    payload = {"spans": [_span("a", 1, parent="b"), _span("b", 2, parent="a"), _span("c", 3, parent="c")]}

    roots = build_tree(payload)

    ids = [r.id for r in roots]
    assert "c" in ids
    assert len(ids) == 2
    assert count_orphans(payload) == 2


def test_flow_uses_labels_and_passes_unmapped_through():
    payload = {"spans": [_span("s1", 1, name="ai.call"), _span("s2", 2, name="unmapped.custom.op")]}

    roots = build_tree(payload)

    assert roots[0].label == "AiChatGateway::chat"
    assert roots[1].label == "unmapped.custom.op"


def test_custom_label_mapper():
    payload = {"spans": [_span("s1", 1, name="unmapped.custom.op")]}

    roots = build_tree(payload, labels=LabelMapper({"unmapped.custom.op": "Custom op"}))

    assert roots[0].label == "Custom op"


def test_malformed_meta_json_becomes_empty():
    payload = {"spans": [_span("a", 1, meta_json="{broken"), _span("b", 2, meta_json="[1, 2]")]}

    roots = build_tree(payload)

    assert roots[0].meta == {}
    assert roots[1].meta == {}


def test_build_tree_from_fetch_result(repository, recorder):
    recorder.span("support_chat.ask", lambda: recorder.span("kb.match", lambda: None))

    roots = build_tree(repository.fetch(recorder.trace_id))

    assert len(roots) == 1
    assert roots[0].label == "SupportChatService::ask"
    assert roots[0].children[0].label == "SupportChatService::findMatches"


def test_build_tree_empty_payloads():
    assert build_tree({"spans": []}) == []
    assert build_tree({}) == []
    assert build_tree(None) == []
    assert build_tree([], mode="prefix") == []


def test_unknown_mode_raises():
    with pytest.raises(ValueError):
        build_tree({"spans": []}, mode="graph")


# ── Prefix mode ───────────────────────────────────────────────────────


def test_prefix_groups_by_name_segments():
    payload = {
        "spans": [
            _span("s1", 1, name="adapter.gemini.handleRequest"),
            _span("s2", 2, name="adapter.openai.handleRequest"),
        ]
    }

    roots = build_tree(payload, mode="prefix")

    assert len(roots) == 1
    adapter = roots[0]
    assert adapter.id == "adapter"
    assert adapter.label == "adapter"
    assert adapter.duration_ms is None
    assert [c.id for c in adapter.children] == ["adapter.gemini", "adapter.openai"]
    gemini, openai = adapter.children
    assert [c.id for c in gemini.children] == ["adapter.gemini.handleRequest"]
    assert [c.id for c in openai.children] == ["adapter.openai.handleRequest"]
    assert gemini.children[0].label == "GeminiChatAdapter::handleRequest"


def test_prefix_leaf_with_children():
    payload = {
        "spans": [
            _span("s1", 1, name="ai.call", duration_ms=40, meta={"model": "gpt-4"}),
            _span("s2", 2, name="ai.call.retry", duration_ms=5),
        ]
    }

    roots = build_tree(payload, mode="prefix")

    ai = roots[0]
    assert ai.id == "ai"
    call = ai.children[0]
    assert call.id == "ai.call"
    assert call.duration_ms == 40
    assert call.meta == {"model": "gpt-4"}
    assert [c.id for c in call.children] == ["ai.call.retry"]


def test_prefix_ignores_parent_links():
    payload = {"spans": [_span("s1", 1, name="kb.match"), _span("s2", 2, name="ai.call", parent="s1")]}

    roots = build_tree(payload, mode="prefix")

    assert [r.id for r in roots] == ["kb", "ai"]


def test_prefix_duplicate_names_last_wins():
    payload = {
        "spans": [
            _span("s1", 1, name="http.client.request", duration_ms=10),
            _span("s2", 2, name="http.client.request", duration_ms=99),
        ]
    }

    roots = build_tree(payload, mode="prefix")

    leaf = roots[0].children[0].children[0]
    assert leaf.duration_ms == 99


def test_prefix_skips_empty_names():
    payload = {"spans": [_span("s1", 1, name=""), _span("s2", 2, name="kb")]}

    roots = build_tree(payload, mode="prefix")

    assert [r.id for r in roots] == ["kb"]
    assert roots[0].duration_ms == 0


def test_non_finite_numbers_are_treated_as_zero():
    payload = {
        "spans": [
            _span("a", float("inf"), duration_ms=float("inf")),
            _span("b", 2, parent="a", duration_ms=float("-inf")),
        ]
    }

    (root,) = build_tree(payload, mode="flow")

    assert root.id == "a"
    assert root.duration_ms == 0
    assert [(c.id, c.duration_ms) for c in root.children] == [("b", 0)]
    assert [c.id for c in build_tree(payload, mode="debug")[0].children] == ["a", "b"]


# ── Debug mode ────────────────────────────────────────────────────────


def test_debug_flat_in_sequence_order():
    payload = {"spans": [_span("b", 2, parent="a"), _span("a", 1), _span("c", 3, parent="b")]}

    roots = build_tree(payload, mode="debug")

    assert len(roots) == 1
    root = roots[0]
    assert root.id == DEBUG_ROOT_ID
    assert root.label == "Raw spans (Debug)"
    assert root.duration_ms is None
    assert [c.id for c in root.children] == ["a", "b", "c"]
    assert all(c.children == [] for c in root.children)


def test_nodes_fallback_from_linear_export():
    payload = {
        "spans": [],
        "tree": {
            "nodes": [
                {"id": "support_chat.ask", "duration_ms": 12, "meta": {}},
                {"id": "kb.match", "duration_ms": 3, "meta": {"hits": 1}},
            ],
            "edges": [{"from": "support_chat.ask", "to": "kb.match"}],
        },
    }

    roots = build_tree(payload, mode="debug")

    assert [c.id for c in roots[0].children] == ["support_chat.ask", "kb.match"]
    assert roots[0].children[1].meta == {"hits": 1}


def test_to_dict_shape(sample_spans):
    (root,) = build_tree(sample_spans)

    data = root.to_dict()
    assert set(data) == {"id", "label", "duration_ms", "meta", "children"}
    assert data["children"][0]["children"] == []
