"""Claude runtime event processing.

Separates SDK message parsing from the session handling in ``client.py``
and the runtime contract in ``runner.py``.
"""

from __future__ import annotations

import json

from claude_agent_sdk import AssistantMessage, ResultMessage, SystemMessage, TextBlock
from claude_agent_sdk.types import Message

from agentswitch.events import ErrorEvent, StreamEvent, TokenEvent


def truncate(text: str, max_len: int = 200) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def format_tool_input(tool_input: object) -> str:
    """Tool input preview for the approval surface."""
    try:
        return truncate(json.dumps(tool_input, indent=2), 500)
    except (TypeError, ValueError):
        return truncate(str(tool_input), 500)


class ClaudeEventProcessor:
    def session_id_of(self, message: Message) -> str | None:
        session_id = None
        if isinstance(message, SystemMessage) and message.subtype == "init":
            session_id = message.data.get("session_id")
        elif isinstance(message, ResultMessage):
            session_id = message.session_id
        if isinstance(session_id, str) and session_id:
            return session_id
        return None

    def _handle_assistant(self, message: AssistantMessage, message_id: str) -> list[StreamEvent]:
        return [
            TokenEvent(message_id=message_id, text=block.text)
            for block in message.content
            if isinstance(block, TextBlock) and block.text
        ]

    def _handle_result(self, message: ResultMessage) -> list[StreamEvent]:
        if message.subtype == "success" and not message.is_error:
            return []
        result = message.result
        if isinstance(result, str) and result.strip():
            return [ErrorEvent(result.strip())]
        return [ErrorEvent(f"Claude run failed ({message.subtype or 'unknown'})")]

    def parse_event(self, message: Message, message_id: str) -> list[StreamEvent]:
        if isinstance(message, AssistantMessage):
            return self._handle_assistant(message, message_id)
        if isinstance(message, ResultMessage):
            return self._handle_result(message)
        return []
