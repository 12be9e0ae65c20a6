"""Shared event and command vocabulary.

Every runtime backend, the coordinator and the consumer surface speak these
types. Nothing in here performs I/O.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Union

log = logging.getLogger("events")


class RuntimeKind(str, enum.Enum):
    GRAPH_CHECKPOINT = "graph-checkpoint"
    SESSION_RESUMABLE = "session-resumable"
    THREAD_BASED = "thread-based"

    @property
    def metadata_key(self) -> str:
        """Conversation metadata key holding this kind's native identifier."""
        head, *rest = self.value.split("-")
        return head + "".join(p.capitalize() for p in rest) + "SessionId"


# Older names for the same runtimes, as stored by earlier front ends.
RUNTIME_ALIASES = {
    "graph-checkpoint": RuntimeKind.GRAPH_CHECKPOINT,
    "deepagents": RuntimeKind.GRAPH_CHECKPOINT,
    "session-resumable": RuntimeKind.SESSION_RESUMABLE,
    "claude-sdk": RuntimeKind.SESSION_RESUMABLE,
    "thread-based": RuntimeKind.THREAD_BASED,
    "codex": RuntimeKind.THREAD_BASED,
}


def parse_runtime_kind(value: object) -> RuntimeKind | None:
    """Return the kind named by ``value``, or None if it names nothing we run."""
    if isinstance(value, RuntimeKind):
        return value
    if not isinstance(value, str):
        return None
    return RUNTIME_ALIASES.get(value.strip().lower())


class StreamMode(str, enum.Enum):
    MESSAGES = "messages"  # token-oriented chunks
    VALUES = "values"  # full graph state


# -----------------
# Stream events
# -----------------


@dataclass(frozen=True)
class TokenEvent:
    message_id: str
    text: str

    terminal = False

    def to_payload(self) -> dict:
        return {"type": "token", "messageId": self.message_id, "token": self.text}


@dataclass(frozen=True)
class StateUpdateEvent:
    mode: StreamMode
    data: object

    terminal = False

    def to_payload(self) -> dict:
        return {"type": "stream", "mode": self.mode.value, "data": self.data}


@dataclass(frozen=True)
class DoneEvent:
    terminal = True

    def to_payload(self) -> dict:
        return {"type": "done"}


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    code: str | None = None

    terminal = True

    def to_payload(self) -> dict:
        payload: dict[str, object] = {"type": "error", "error": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


StreamEvent = Union[TokenEvent, StateUpdateEvent, DoneEvent, ErrorEvent]


# -----------------
# HITL decisions
# -----------------


class DecisionType(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"


@dataclass(frozen=True)
class HITLDecision:
    type: DecisionType
    edited_action: object | None = None

    @classmethod
    def approve(cls) -> HITLDecision:
        return cls(DecisionType.APPROVE)

    @classmethod
    def reject(cls) -> HITLDecision:
        return cls(DecisionType.REJECT)

    @classmethod
    def edit(cls, edited_action: object) -> HITLDecision:
        return cls(DecisionType.EDIT, edited_action)

    @classmethod
    def from_payload(cls, payload: object) -> HITLDecision:
        """Parse ``{"type": "approve" | "reject" | "edit", "editedAction": ...}``.

        Raises ValueError for anything else.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Decision must be an object, got {type(payload).__name__}")
        try:
            kind = DecisionType(str(payload.get("type", "")).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown decision type: {payload.get('type')!r}") from None
        if kind == DecisionType.EDIT:
            edited = payload.get("editedAction", payload.get("edited_action"))
            if edited is None:
                raise ValueError("Edit decision requires editedAction")
            return cls.edit(edited)
        return cls(kind)


# -----------------
# Operation arguments
# -----------------


@dataclass(frozen=True)
class TurnInput:
    conversation_id: str
    message: str
    working_directory: str
    model_id: str | None = None


@dataclass(frozen=True)
class ResumeArgs:
    conversation_id: str
    working_directory: str
    command: object = None

    @property
    def decision(self) -> str:
        """Decision named by a ``{"resume": {"decision": ...}}`` command."""
        if isinstance(self.command, dict):
            resume = self.command.get("resume")
            if isinstance(resume, dict):
                decision = resume.get("decision")
                if isinstance(decision, str) and decision:
                    return decision
        return DecisionType.APPROVE.value


@dataclass(frozen=True)
class InterruptArgs:
    conversation_id: str
    working_directory: str
    decision: HITLDecision


RunRequest = Union[TurnInput, ResumeArgs, InterruptArgs]


# -----------------
# Cancellation
# -----------------


@dataclass(eq=False)
class CancelToken:
    """One-way cancellation flag shared by a run and its backend.

    Backends poll ``cancelled`` between events; callbacks let them signal
    native work (e.g. terminate a subprocess) the moment it is triggered.
    """

    _cancelled: bool = False
    _callbacks: list[Callable[[], None]] = field(default_factory=list)
    _event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                log.debug(f"Cancel callback failed: {e}")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    async def wait(self) -> None:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()
