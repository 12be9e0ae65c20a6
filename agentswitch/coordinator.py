"""Stream coordinator.

This is the single place that owns:
- at most one active run per conversation (newest submission wins)
- cancellation (signal the run's token, stop forwarding, no draining)
- routing a request to the selected runtime's matching operation

It depends only on ports, not on the sqlite repositories, the websocket
surface, or concrete runtimes.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator

from agentswitch.errors import WorkspaceRequired, describe_failure, is_cancellation_noise
from agentswitch.events import (
    CancelToken,
    ErrorEvent,
    InterruptArgs,
    ResumeArgs,
    RunRequest,
    RuntimeKind,
    StreamEvent,
    TurnInput,
)
from agentswitch.ports import ConversationStorePort, RunEventSinkPort
from agentswitch.runtimes.ports import RuntimeFactoryPort
from agentswitch.selector import RuntimeSelector

log = logging.getLogger("coordinator")


def _operation_name(request: RunRequest) -> str:
    if isinstance(request, TurnInput):
        return "begin"
    if isinstance(request, ResumeArgs):
        return "resume"
    if isinstance(request, InterruptArgs):
        return "interrupt"
    raise TypeError(f"Unsupported run request: {type(request).__name__}")


@dataclass(eq=False)
class Run:
    """One in-flight turn, resume, or interrupt decision."""

    conversation_id: str
    operation: str
    sink: RunEventSinkPort
    token: CancelToken = field(default_factory=CancelToken)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    runtime: RuntimeKind | None = None
    task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    async def wait(self) -> None:
        """Wait until the run has stopped forwarding events."""
        if self.task is None:
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass


class StreamCoordinator:
    def __init__(
        self,
        *,
        conversations: ConversationStorePort,
        selector: RuntimeSelector,
        runtimes: RuntimeFactoryPort,
    ):
        self._conversations = conversations
        self._selector = selector
        self._runtimes = runtimes

        # conversation id -> its only active run
        self._slots: dict[str, Run] = {}

    def active_run(self, conversation_id: str) -> Run | None:
        return self._slots.get(conversation_id)

    def is_running(self, conversation_id: str) -> bool:
        return conversation_id in self._slots

    def submit(self, request: RunRequest, sink: RunEventSinkPort) -> Run:
        """Start a run, superseding whatever the conversation was doing.

        Must be called from the event loop; the swap is synchronous so no
        two runs of one conversation are ever active together.
        """
        operation = _operation_name(request)
        conversation_id = request.conversation_id

        existing = self._slots.pop(conversation_id, None)
        if existing:
            log.info(
                f"Aborting existing {existing.operation} run {existing.run_id} "
                f"for conversation {conversation_id}"
            )
            existing.token.cancel()

        run = Run(conversation_id=conversation_id, operation=operation, sink=sink)
        self._slots[conversation_id] = run
        run.task = asyncio.create_task(self._drive(run, request))
        log.info(f"Started {operation} run {run.run_id} for conversation {conversation_id}")
        return run

    def cancel(self, conversation_id: str) -> bool:
        """Cancel the conversation's active run. Idempotent."""
        run = self._slots.pop(conversation_id, None)
        if not run:
            return False
        log.info(f"Cancelling {run.operation} run {run.run_id} for conversation {conversation_id}")
        run.token.cancel()
        return True

    def close_surface(self, sink: RunEventSinkPort) -> int:
        """The consumer behind ``sink`` is gone: cancel everything it was watching."""
        cancelled = 0
        for conversation_id, run in list(self._slots.items()):
            if run.sink is sink and self.cancel(conversation_id):
                cancelled += 1
        if cancelled:
            log.info(f"Consumer surface closed; cancelled {cancelled} run(s)")
        return cancelled

    async def shutdown(self) -> None:
        runs = list(self._slots.values())
        for run in runs:
            self.cancel(run.conversation_id)
        for run in runs:
            if run.task and not run.task.done():
                run.task.cancel()
            await run.wait()

    def _with_working_directory(self, request: RunRequest) -> RunRequest:
        if request.working_directory:
            return request
        conversation = self._conversations.get(request.conversation_id)
        working_directory = conversation.working_directory if conversation else None
        if not working_directory:
            raise WorkspaceRequired()
        return dataclasses.replace(request, working_directory=working_directory)

    def _open_stream(self, run: Run, request: RunRequest) -> AsyncIterator[StreamEvent]:
        request = self._with_working_directory(request)
        run.runtime = self._selector.resolve(run.conversation_id)
        runtime = self._runtimes.create(run.runtime)
        log.debug(f"Run {run.run_id} uses the {run.runtime.value} runtime")

        if isinstance(request, TurnInput):
            return runtime.begin(request, run.token)
        if isinstance(request, ResumeArgs):
            return runtime.continue_from_checkpoint(request, run.token)
        return runtime.respond_to_interrupt(request, run.token)

    async def _forward(self, run: Run, event: StreamEvent) -> bool:
        """Hand one event to the consumer. False once the run must stop."""
        if run.token.cancelled or self._slots.get(run.conversation_id) is not run:
            return False
        try:
            await run.sink.emit(run.conversation_id, event)
        except Exception as e:
            log.warning(f"Consumer for conversation {run.conversation_id} went away: {e}")
            self._release(run)
            run.token.cancel()
            return False
        return True

    def _release(self, run: Run) -> None:
        if self._slots.get(run.conversation_id) is run:
            del self._slots[run.conversation_id]

    async def _drive(self, run: Run, request: RunRequest) -> None:
        try:
            try:
                events = self._open_stream(run, request)
            except WorkspaceRequired as e:
                await self._forward(run, ErrorEvent(str(e), code=e.code))
                return

            async with aclosing(events):
                async for event in events:
                    if not await self._forward(run, event):
                        log.debug(f"Run {run.run_id} superseded or cancelled; stop forwarding")
                        break
                    if event.terminal:
                        break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if run.token.cancelled or is_cancellation_noise(e):
                log.debug(f"Run {run.run_id} ended during cancellation: {e}")
            else:
                log.exception(f"Run {run.run_id} failed")
                await self._forward(run, ErrorEvent(describe_failure(e)))
        finally:
            self._release(run)
