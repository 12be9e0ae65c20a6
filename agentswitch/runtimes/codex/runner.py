"""Thread-based Codex runtime.

Codex cannot prompt mid-turn, so every turn starts with one allow/deny gate
that picks the sandbox policy for the whole turn. There is no checkpoint to
resume and no interrupt to answer.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol

from agentswitch.config import CodexConfig
from agentswitch.errors import UnsupportedOperation
from agentswitch.events import (
    CancelToken,
    ErrorEvent,
    InterruptArgs,
    ResumeArgs,
    RuntimeKind,
    StreamEvent,
    TurnInput,
)
from agentswitch.identity import SessionIdentityStore
from agentswitch.ports import ApprovalPort, ApprovalRequest, ApprovalScope
from agentswitch.runtimes.base import BaseRuntime, RunState, new_message_id, new_request_id
from agentswitch.runtimes.codex.client import CodexCliClient, SandboxMode
from agentswitch.runtimes.codex.processor import CodexEventProcessor

log = logging.getLogger("codex")


class CodexClientPort(Protocol):
    def run_streamed(
        self,
        prompt: str,
        *,
        cwd: str,
        model: str,
        sandbox: SandboxMode,
        thread_id: str | None,
        token: CancelToken,
    ) -> AsyncIterator[dict]: ...


class ThreadBasedRuntime(BaseRuntime):
    """Runs Codex turns on a resumable thread with a pre-turn sandbox gate."""

    kind = RuntimeKind.THREAD_BASED

    def __init__(
        self,
        identities: SessionIdentityStore,
        approvals: ApprovalPort | None = None,
        client: CodexClientPort | None = None,
        config: CodexConfig | None = None,
    ):
        super().__init__(identities, approvals)
        self._config = config or CodexConfig()
        self._client = client or CodexCliClient(self._config)
        self._processor = CodexEventProcessor()

    async def _choose_sandbox(self, conversation_id: str, token: CancelToken) -> SandboxMode:
        request = ApprovalRequest(
            request_id=new_request_id(),
            conversation_id=conversation_id,
            scope=ApprovalScope.TURN,
            title="Codex Tool Permission Request",
            message="Allow Codex to run tools / write to the workspace for this turn?",
            detail=(
                "If you Allow, Codex can execute commands and modify files.\n"
                "If you Deny, Codex will run in read-only mode."
            ),
        )
        allowed = await self._await_approval(request, token)
        return SandboxMode.WORKSPACE_WRITE if allowed else SandboxMode.READ_ONLY

    async def _begin(
        self, turn: TurnInput, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        sandbox = await self._choose_sandbox(turn.conversation_id, token)
        if token.cancelled:
            return
        thread_id = self._identities.get(turn.conversation_id, self.kind)
        log.info(
            f"Codex ({turn.conversation_id}, {sandbox.value}"
            f"{', resume ' + thread_id if thread_id else ''}): {turn.message[:50]}..."
        )

        message_id = new_message_id("codex")
        async for record in self._client.run_streamed(
            turn.message,
            cwd=turn.working_directory,
            model=self._config.resolve_model(turn.model_id),
            sandbox=sandbox,
            thread_id=thread_id,
            token=token,
        ):
            if token.cancelled:
                return
            self._remember_native_id(state, self._processor.thread_id_of(record))
            for event in self._processor.parse_event(record, message_id):
                yield event

    async def _continue(
        self, args: ResumeArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        yield ErrorEvent(str(UnsupportedOperation(self.kind.value, "Resume from checkpoint")))

    async def _respond(
        self, args: InterruptArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        yield ErrorEvent(str(UnsupportedOperation(self.kind.value, "Interrupt handling")))
