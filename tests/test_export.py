# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for JSON trace export."""

import json

from spanstack.export import TraceExporter, to_linear_tree
from spanstack.tree import build_tree


def _traced(manager):
    recorder = manager.start("chat")
    recorder.span(
        "support_chat.ask",
        lambda: recorder.span("ai.call", lambda: None, {"model": "gpt-4"}),
    )
    manager.finish(recorder)
    return recorder


def test_export_writes_json_file(tmp_path, manager, repository):
    recorder = _traced(manager)
    exporter = TraceExporter(repository, tmp_path / "exports")

    result = exporter.export_to_json_file(recorder.trace_id, "chat view")

    assert result.ok
    assert result.trace_id == recorder.trace_id
    assert result.file.startswith("chat_view_Trace_Tree_")
    assert result.file.endswith(".json")
    with open(result.path, encoding="utf-8") as f:
        payload = json.load(f)
    assert payload["view"] == "chat view"
    assert payload["trace_id"] == recorder.trace_id
    assert payload["total_ms"] > 0
    assert [s["name"] for s in payload["spans"]] == ["support_chat.ask", "ai.call"]
    assert payload["spans"][1]["meta"] == {"model": "gpt-4"}
    assert payload["tree"]["edges"] == [{"from": "support_chat.ask", "to": "ai.call"}]


def test_export_blank_trace_id(tmp_path, repository):
    result = TraceExporter(repository, tmp_path).export_to_json_file("  ", "chat")

    assert not result.ok
    assert result.error == "trace_id missing"


def test_export_unknown_trace(tmp_path, repository):
    export_dir = tmp_path / "exports"
    result = TraceExporter(repository, export_dir).export_to_json_file("nonexistent-id", "chat")

    assert not result.ok
    assert result.error == "trace not found"
    assert result.trace_id == "nonexistent-id"
    assert not export_dir.exists()


def test_export_blank_view_defaults_to_unknown(tmp_path, manager, repository):
    recorder = _traced(manager)

    result = TraceExporter(repository, tmp_path).export_to_json_file(recorder.trace_id, "")

    assert result.ok
    assert result.file.startswith("unknown_Trace_Tree_")


def test_export_unwritable_directory(tmp_path, manager, repository):
    recorder = _traced(manager)
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    result = TraceExporter(repository, blocker / "sub").export_to_json_file(recorder.trace_id, "chat")

    assert not result.ok
    assert result.error.startswith("write failed")


def test_linear_tree(manager, repository):
    recorder = _traced(manager)
    spans = repository.fetch(recorder.trace_id).spans

    tree = to_linear_tree(spans)

    assert [n["id"] for n in tree["nodes"]] == ["support_chat.ask", "ai.call"]
    assert len(tree["edges"]) == 1


def test_exported_payload_rebuilds_as_tree(tmp_path, manager, repository):
    recorder = _traced(manager)
    payload = TraceExporter(repository, tmp_path).build_payload(recorder.trace_id, "chat")

    roots = build_tree(payload, mode="prefix")

    assert [r.id for r in roots] == ["support_chat", "ai"]
