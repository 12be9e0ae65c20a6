"""Ports (interfaces) for runtime implementations.

The coordinator and the server depend on this contract rather than on
concrete runtimes.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from agentswitch.events import (
    CancelToken,
    InterruptArgs,
    ResumeArgs,
    RuntimeKind,
    StreamEvent,
    TurnInput,
)


class RuntimeBackend(Protocol):
    """An agent runtime adapter.

    Every operation returns a fresh, lazy, single-consumer event stream that
    ends with exactly one ``done``/``error`` event, or with nothing at all
    once ``token`` is cancelled. Operations never raise.
    """

    kind: RuntimeKind

    def begin(self, turn: TurnInput, token: CancelToken) -> AsyncIterator[StreamEvent]:
        ...

    def continue_from_checkpoint(
        self, args: ResumeArgs, token: CancelToken
    ) -> AsyncIterator[StreamEvent]:
        ...

    def respond_to_interrupt(
        self, args: InterruptArgs, token: CancelToken
    ) -> AsyncIterator[StreamEvent]:
        ...


class RuntimeFactoryPort(Protocol):
    def create(self, kind: RuntimeKind) -> RuntimeBackend: ...
