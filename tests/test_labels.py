# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the operation-name label mapping."""

from spanstack.labels import NAME_MAP, LabelMapper, map_label


def test_known_names_are_mapped():
    assert map_label("ai.call") == "AiChatGateway::chat"
    assert map_label("kb.match") == "SupportChatService::findMatches"


def test_unmapped_name_passes_through():
    assert map_label("unmapped.custom.op") == "unmapped.custom.op"
    assert map_label("") == ""


def test_extra_entries_override_defaults():
    mapper = LabelMapper({"ai.call": "Gateway", "custom.op": "Custom"})

    assert mapper.label("ai.call") == "Gateway"
    assert mapper.label("custom.op") == "Custom"
    assert mapper.label("kb.match") == NAME_MAP["kb.match"]
    assert "custom.op" in mapper
    assert len(mapper) == len(NAME_MAP) + 1


def test_extra_entries_do_not_leak_into_defaults():
    LabelMapper({"kb.match": "changed"})
    assert map_label("kb.match") == "SupportChatService::findMatches"
