"""Runtime selection for a conversation.

Precedence, highest first:
1. process-wide override (AGENTSWITCH_AGENT_RUNTIME), for development/testing
2. per-conversation override (``agentRuntime`` metadata)
3. global default (settings store)
4. fixed fallback

Each level is validated against the known runtime kinds; anything invalid
or missing falls through to the next level.
"""

from __future__ import annotations

import logging
import os

from agentswitch.config import RUNTIME_OVERRIDE_ENV
from agentswitch.db import DEFAULT_RUNTIME_SETTING, RUNTIME_OVERRIDE_KEY, parse_metadata
from agentswitch.events import RuntimeKind, parse_runtime_kind
from agentswitch.ports import ConversationStorePort, SettingsPort

log = logging.getLogger("selector")

FALLBACK_RUNTIME = RuntimeKind.GRAPH_CHECKPOINT


class RuntimeSelector:
    def __init__(
        self,
        conversations: ConversationStorePort,
        settings: SettingsPort,
        *,
        fallback: RuntimeKind = FALLBACK_RUNTIME,
    ):
        self._conversations = conversations
        self._settings = settings
        self._fallback = fallback

    def resolve(self, conversation_id: str) -> RuntimeKind:
        """Effective runtime for the next turn. Never cached."""
        env_value = os.getenv(RUNTIME_OVERRIDE_ENV)
        kind = parse_runtime_kind(env_value)
        if kind:
            return kind
        if env_value:
            log.warning(f"Ignoring invalid {RUNTIME_OVERRIDE_ENV}={env_value!r}")

        kind = self.get_override(conversation_id)
        if kind:
            return kind

        kind = self.get_default()
        if kind:
            return kind

        return self._fallback

    def get_override(self, conversation_id: str) -> RuntimeKind | None:
        conversation = self._conversations.get(conversation_id)
        if not conversation:
            return None
        value = parse_metadata(conversation.metadata).get(RUNTIME_OVERRIDE_KEY)
        return parse_runtime_kind(value)

    def set_override(self, conversation_id: str, kind: RuntimeKind | None) -> bool:
        """Pin a conversation to ``kind``; None clears the override."""
        return self._conversations.update_metadata(
            conversation_id, {RUNTIME_OVERRIDE_KEY: kind.value if kind else None}
        )

    def get_default(self) -> RuntimeKind | None:
        return parse_runtime_kind(self._settings.get(DEFAULT_RUNTIME_SETTING))

    def set_default(self, kind: RuntimeKind | None) -> None:
        self._settings.set(DEFAULT_RUNTIME_SETTING, kind.value if kind else None)
