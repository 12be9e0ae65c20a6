"""Session-resumable Claude runtime.

Each turn is one request/response exchange resumed by session id. The only
pause point is the tool permission callback, which holds the CLI mid-turn
until the approval surface answers. Once an exchange has returned there is
nothing to resume at the paused instruction, so approve/edit decisions are
sent as a new turn on the same session.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Protocol

from claude_agent_sdk import PermissionResultAllow, PermissionResultDeny, ToolPermissionContext
from claude_agent_sdk.types import CanUseTool, Message

from agentswitch.config import ClaudeConfig
from agentswitch.events import (
    CancelToken,
    DecisionType,
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
from agentswitch.runtimes.claude.client import ClaudeAgentClient
from agentswitch.runtimes.claude.processor import ClaudeEventProcessor, format_tool_input

log = logging.getLogger("claude")

APPROVED_PROMPT = "Continue with the approved action"
CONTINUE_PROMPT = "Continue"
STOP_PROMPT = "Stop"
NO_SESSION_ERROR = "No Claude session found for this conversation"
DENIED_MESSAGE = "User denied this action"


class ClaudeClientPort(Protocol):
    def query(
        self,
        prompt: str,
        *,
        cwd: str,
        model: str,
        session_id: str | None,
        can_use_tool: CanUseTool,
        token: CancelToken,
    ) -> AsyncIterator[Message]: ...


class SessionResumableRuntime(BaseRuntime):
    """Runs Claude Code turns against a resumable session."""

    kind = RuntimeKind.SESSION_RESUMABLE

    # The pause is an in-process callback, not a persisted checkpoint.
    supports_checkpoint_resume = False

    def __init__(
        self,
        identities: SessionIdentityStore,
        approvals: ApprovalPort | None = None,
        client: ClaudeClientPort | None = None,
        config: ClaudeConfig | None = None,
    ):
        super().__init__(identities, approvals)
        self._config = config or ClaudeConfig()
        self._client = client or ClaudeAgentClient(self._config)
        self._processor = ClaudeEventProcessor()

    def _permission_callback(self, conversation_id: str, token: CancelToken) -> CanUseTool:
        async def can_use_tool(
            tool_name: str, tool_input: dict, context: ToolPermissionContext
        ) -> PermissionResultAllow | PermissionResultDeny:
            request = ApprovalRequest(
                request_id=new_request_id(),
                conversation_id=conversation_id,
                scope=ApprovalScope.TOOL,
                title="Tool Permission Request",
                message=f"Claude wants to use: {tool_name}",
                detail=f"Input:\n{format_tool_input(tool_input)}",
                tool_name=tool_name,
                tool_input=tool_input,
            )
            if await self._await_approval(request, token):
                return PermissionResultAllow(updated_input=tool_input)
            return PermissionResultDeny(message=DENIED_MESSAGE)

        return can_use_tool

    async def _run_exchange(
        self,
        prompt: str,
        *,
        conversation_id: str,
        cwd: str,
        model: str,
        session_id: str | None,
        token: CancelToken,
        state: RunState,
        prefix: str,
    ) -> AsyncIterator[StreamEvent]:
        log.info(f"Claude ({conversation_id}): {prompt[:50]}...")
        message_id = new_message_id(prefix)
        async for message in self._client.query(
            prompt,
            cwd=cwd,
            model=model,
            session_id=session_id,
            can_use_tool=self._permission_callback(conversation_id, token),
            token=token,
        ):
            if token.cancelled:
                return
            self._remember_native_id(state, self._processor.session_id_of(message))
            for event in self._processor.parse_event(message, message_id):
                yield event

    async def _begin(
        self, turn: TurnInput, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        session_id = self._identities.get(turn.conversation_id, self.kind)
        async for event in self._run_exchange(
            turn.message,
            conversation_id=turn.conversation_id,
            cwd=turn.working_directory,
            model=self._config.resolve_model(turn.model_id),
            session_id=session_id,
            token=token,
            state=state,
            prefix="claude",
        ):
            yield event

    async def _continue(
        self, args: ResumeArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        session_id = self._identities.get(args.conversation_id, self.kind)
        if not session_id:
            yield ErrorEvent(NO_SESSION_ERROR)
            return
        prompt = CONTINUE_PROMPT if args.decision == DecisionType.APPROVE.value else STOP_PROMPT
        async for event in self._run_exchange(
            prompt,
            conversation_id=args.conversation_id,
            cwd=args.working_directory,
            model=self._config.resolve_model(None),
            session_id=session_id,
            token=token,
            state=state,
            prefix="claude-resume",
        ):
            yield event

    async def _respond(
        self, args: InterruptArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        session_id = self._identities.get(args.conversation_id, self.kind)
        if not session_id:
            yield ErrorEvent(NO_SESSION_ERROR)
            return

        decision = args.decision
        if decision.type == DecisionType.REJECT:
            return

        prompt = APPROVED_PROMPT
        if decision.type == DecisionType.EDIT:
            edited = json.dumps(decision.edited_action, default=str)
            prompt = f"{APPROVED_PROMPT}, using these arguments instead: {edited}"
        async for event in self._run_exchange(
            prompt,
            conversation_id=args.conversation_id,
            cwd=args.working_directory,
            model=self._config.resolve_model(None),
            session_id=session_id,
            token=token,
            state=state,
            prefix="claude-interrupt",
        ):
            yield event
