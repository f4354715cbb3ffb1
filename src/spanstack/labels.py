# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Human-readable labels for span operation names.

Consulted only when building display trees. Lookups are total: a name with
no entry is returned unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping

NAME_MAP: dict[str, str] = {
    "ui.ChatView.send.normal": "ChatView::send (normal)",
    "ui.ChatView.send.dbOnly": "ChatView::useDbStepsOnly",
    "http.api.chat": "UI -> POST /api/chat",
    "controller.ChatController::chat": "ChatController::chat [POST /api/chat]",
    "support_chat.ask": "SupportChatService::ask",
    "usage.increment": "UsageTracker::increment",
    "kb.match": "SupportChatService::findMatches",
    "kb.build_context": "SupportChatService::buildKbContext",
    "cache.history_load": "SupportChatService::loadHistory",
    "cache.history_save": "SupportChatService::saveHistory",
    "history.ensure_system_prompt": "SupportChatService::ensureSystemPrompt",
    "history.trim": "SupportChatService::trimHistory",
    "ai.call": "AiChatGateway::chat",
    "gateway.ai_chat.chat": "AiChatGateway::chat (internal)",
    "registry.adapter.resolve": "ChatAdapterRegistry::resolve",
    "registry.adapter.created": "ChatAdapterRegistry::created",
    "registry.factory.supports": "ProviderFactory::supports",
    "registry.factory.create_adapter": "ProviderFactory::create",
    "adapter.handle_request": "Adapter::handleRequest (generic)",
    "adapter.gemini.handleRequest": "GeminiChatAdapter::handleRequest",
    "adapter.gemini.vendor_call": "Gemini vendor call",
    "adapter.openai.handleRequest": "OpenAiChatAdapter::handleRequest",
    "adapter.openai.vendor_call": "OpenAI SDK call",
    "http.client.request": "TracingTransport::handle_request",
}


class LabelMapper:
    """Maps operation names to display labels.

    Args:
        extra: Entries added on top of (and overriding) :data:`NAME_MAP`.
    """

    def __init__(self, extra: Mapping[str, str] | None = None) -> None:
        self._labels = dict(NAME_MAP)
        if extra:
            self._labels.update(extra)

    def label(self, name: str) -> str:
        return self._labels.get(name, name)

    def __contains__(self, name: object) -> bool:
        return name in self._labels

    def __len__(self) -> int:
        return len(self._labels)


_default = LabelMapper()


def map_label(name: str) -> str:
    """Label for ``name`` from the default mapping, or ``name`` itself."""
    return _default.label(name)
