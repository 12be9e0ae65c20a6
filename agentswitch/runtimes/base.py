"""Base runtime functionality shared by runtime implementations."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator

from agentswitch.errors import describe_failure, is_cancellation_noise
from agentswitch.events import (
    CancelToken,
    DoneEvent,
    ErrorEvent,
    InterruptArgs,
    ResumeArgs,
    RuntimeKind,
    StreamEvent,
    TurnInput,
)
from agentswitch.identity import SessionIdentityStore
from agentswitch.ports import ApprovalPort, ApprovalRequest

log = logging.getLogger("runtimes")


@dataclass
class RunState:
    """Accumulates state during one runtime execution."""

    conversation_id: str
    start_time: datetime = field(default_factory=datetime.now)
    native_id: str | None = None
    event_count: int = 0

    @property
    def duration_s(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()


def new_message_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


def new_request_id() -> str:
    return uuid.uuid4().hex


class BaseRuntime:
    """Base class for runtimes.

    Subclasses implement the ``_begin``/``_continue``/``_respond`` async
    generators and only yield native-derived events; the public operations
    wrap them with the cancellation and failure contract.
    """

    kind: RuntimeKind

    def __init__(self, identities: SessionIdentityStore, approvals: ApprovalPort | None = None):
        self._identities = identities
        self._approvals = approvals

    def begin(self, turn: TurnInput, token: CancelToken) -> AsyncIterator[StreamEvent]:
        state = RunState(turn.conversation_id)
        return self._guard(self._begin(turn, token, state), token, state, "begin")

    def continue_from_checkpoint(
        self, args: ResumeArgs, token: CancelToken
    ) -> AsyncIterator[StreamEvent]:
        state = RunState(args.conversation_id)
        return self._guard(self._continue(args, token, state), token, state, "resume")

    def respond_to_interrupt(
        self, args: InterruptArgs, token: CancelToken
    ) -> AsyncIterator[StreamEvent]:
        state = RunState(args.conversation_id)
        return self._guard(self._respond(args, token, state), token, state, "interrupt")

    def _begin(
        self, turn: TurnInput, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        raise NotImplementedError

    def _continue(
        self, args: ResumeArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        raise NotImplementedError

    def _respond(
        self, args: InterruptArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        raise NotImplementedError

    async def _guard(
        self,
        events: AsyncIterator[StreamEvent],
        token: CancelToken,
        state: RunState,
        operation: str,
    ) -> AsyncIterator[StreamEvent]:
        """Apply the adapter contract to a native event stream.

        - nothing is emitted once ``token`` is cancelled, not even ``done``
        - the first terminal event ends the stream
        - cancellation noise is swallowed, other failures become ``error``
        - a stream that ends cleanly gets a trailing ``done``
        """
        label = f"{self.kind.value} {operation} ({state.conversation_id})"
        try:
            async with aclosing(events):
                async for event in events:
                    if token.cancelled:
                        log.debug(f"{label}: cancelled, dropping remaining events")
                        return
                    state.event_count += 1
                    yield event
                    if event.terminal:
                        return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if token.cancelled or is_cancellation_noise(e):
                log.debug(f"{label}: ended during cancellation: {e}")
                return
            log.exception(f"{label}: runtime error")
            yield ErrorEvent(describe_failure(e))
            return

        if token.cancelled:
            return
        native = f" [{state.native_id}]" if state.native_id else ""
        log.info(
            f"{label}{native}: done after {state.event_count} events in {state.duration_s:.1f}s"
        )
        yield DoneEvent()

    def _remember_native_id(self, state: RunState, native_id: str | None) -> None:
        """Persist a newly revealed native id, at most once per run.

        An id already stored for the conversation is never replaced.
        """
        if not native_id or state.native_id:
            return
        state.native_id = native_id
        if self._identities.get(state.conversation_id, self.kind):
            return
        self._identities.set(state.conversation_id, self.kind, native_id)

    async def _await_approval(self, request: ApprovalRequest, token: CancelToken) -> bool:
        """Ask the approval surface, giving up (deny) if the run is cancelled."""
        if self._approvals is None:
            log.warning(f"No approval surface wired; denying {request.title}")
            return False
        if token.cancelled:
            return False

        approval_task = asyncio.create_task(self._approvals.request_approval(request))
        cancel_task = asyncio.create_task(token.wait())
        try:
            done, _ = await asyncio.wait(
                {approval_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if approval_task in done:
                return bool(approval_task.result())
            return False
        finally:
            for task in (approval_task, cancel_task):
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
