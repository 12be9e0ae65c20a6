"""Ports for the persistence and approval collaborators.

The coordinator, selector and runtimes depend on these contracts rather than
on the sqlite repositories or the websocket surface.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol

from agentswitch.db import Conversation
from agentswitch.events import StreamEvent


class ConversationStorePort(Protocol):
    def get(self, conversation_id: str) -> Conversation | None: ...

    def update_metadata(self, conversation_id: str, partial: dict) -> bool: ...


class SettingsPort(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str | None) -> None: ...


class ApprovalScope(str, enum.Enum):
    TOOL = "tool"  # one pending tool call, mid-turn
    TURN = "turn"  # every tool call of the upcoming turn


@dataclass(frozen=True)
class ApprovalRequest:
    request_id: str
    conversation_id: str
    scope: ApprovalScope
    title: str
    message: str
    detail: str = ""
    tool_name: str | None = None
    tool_input: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "type": "approval_request",
            "requestId": self.request_id,
            "scope": self.scope.value,
            "title": self.title,
            "message": self.message,
            "detail": self.detail,
            "toolName": self.tool_name,
        }


class ApprovalPort(Protocol):
    async def request_approval(self, request: ApprovalRequest) -> bool:
        """Block until the human allows (True) or denies (False)."""
        ...


class RunEventSinkPort(Protocol):
    async def emit(self, conversation_id: str, event: StreamEvent) -> None: ...
