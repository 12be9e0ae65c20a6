"""Codex thread event processing."""

from __future__ import annotations

from agentswitch.events import ErrorEvent, StreamEvent, TokenEvent

TEXT_ITEM_TYPES = {"agent_message", "reasoning"}


class CodexEventProcessor:
    def thread_id_of(self, record: dict) -> str | None:
        if record.get("type") != "thread.started":
            return None
        thread_id = record.get("thread_id")
        if isinstance(thread_id, str) and thread_id:
            return thread_id
        return None

    def parse_event(self, record: dict, message_id: str) -> list[StreamEvent]:
        record_type = record.get("type")

        if record_type == "item.completed":
            item = record.get("item")
            if not isinstance(item, dict) or item.get("type") not in TEXT_ITEM_TYPES:
                return []
            text = item.get("text")
            if isinstance(text, str) and text:
                return [TokenEvent(message_id=message_id, text=text)]
            return []

        if record_type == "turn.failed":
            error = record.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            return [ErrorEvent(message or "Turn failed")]

        # Stream-level errors carry the message directly.
        if record_type == "error":
            return [ErrorEvent(record.get("message") or "Stream error")]

        return []
