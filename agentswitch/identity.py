"""Session identity store.

Maps a conversation to each runtime's native session/thread identifier,
one metadata key per runtime kind.
"""

from __future__ import annotations

import logging

from agentswitch.db import parse_metadata
from agentswitch.events import RuntimeKind
from agentswitch.ports import ConversationStorePort

log = logging.getLogger("identity")


class SessionIdentityStore:
    """Thin I/O layer over conversation metadata. No in-memory cache."""

    def __init__(self, conversations: ConversationStorePort):
        self._conversations = conversations

    def get(self, conversation_id: str, kind: RuntimeKind) -> str | None:
        conversation = self._conversations.get(conversation_id)
        if not conversation:
            return None
        value = parse_metadata(conversation.metadata).get(kind.metadata_key)
        if isinstance(value, str) and value.strip():
            return value
        if value is not None:
            log.warning(
                f"Ignoring malformed {kind.metadata_key} for conversation {conversation_id}"
            )
        return None

    def set(self, conversation_id: str, kind: RuntimeKind, native_id: str) -> None:
        if not native_id:
            raise ValueError("native_id must be a non-empty string")
        if not self._conversations.update_metadata(
            conversation_id, {kind.metadata_key: native_id}
        ):
            log.warning(
                f"Cannot store {kind.value} id: conversation {conversation_id} not found"
            )
            return
        log.info(f"Stored {kind.value} id {native_id} for conversation {conversation_id}")
