"""Claude Agent SDK client.

Runs one exchange through ``ClaudeSDKClient``. Tool permission requests
reach ``can_use_tool`` while the CLI is blocked mid-turn, so the exchange
waits on the approval surface until the callback returns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from claude_agent_sdk import (
    ClaudeAgentOptions,
    ClaudeSDKClient,
    CLINotFoundError,
    ProcessError,
    ResultMessage,
)
from claude_agent_sdk.types import CanUseTool, Message

from agentswitch.config import ClaudeConfig
from agentswitch.errors import BackendFailure
from agentswitch.events import CancelToken, RuntimeKind

log = logging.getLogger("claude")


class ClaudeAgentClient:
    """Opens one SDK session per exchange and streams its messages."""

    def __init__(self, config: ClaudeConfig | None = None):
        self._config = config or ClaudeConfig()

    def build_options(
        self,
        *,
        cwd: str,
        model: str,
        session_id: str | None,
        can_use_tool: CanUseTool,
    ) -> ClaudeAgentOptions:
        return ClaudeAgentOptions(
            cwd=cwd,
            model=model,
            resume=session_id or None,
            permission_mode="default",
            can_use_tool=can_use_tool,
            cli_path=self._config.resolve_cli_path(),
        )

    async def query(
        self,
        prompt: str,
        *,
        cwd: str,
        model: str,
        session_id: str | None,
        can_use_tool: CanUseTool,
        token: CancelToken,
    ) -> AsyncIterator[Message]:
        """Run one exchange, yielding SDK messages up to the result."""
        options = self.build_options(
            cwd=cwd, model=model, session_id=session_id, can_use_tool=can_use_tool
        )
        interrupts: list[asyncio.Task] = []

        try:
            async with ClaudeSDKClient(options=options) as client:

                def on_cancel() -> None:
                    interrupts.append(asyncio.ensure_future(self._interrupt(client)))

                token.add_callback(on_cancel)
                try:
                    await client.query(prompt)
                    async for message in client.receive_response():
                        if token.cancelled:
                            return
                        yield message
                        if isinstance(message, ResultMessage):
                            return
                finally:
                    token.remove_callback(on_cancel)
                    for task in interrupts:
                        if not task.done():
                            task.cancel()
        except CLINotFoundError as e:
            raise BackendFailure(RuntimeKind.SESSION_RESUMABLE.value, str(e)) from e
        except ProcessError as e:
            if token.cancelled:
                log.debug(f"Claude exited after cancellation: {e}")
                return
            detail = (e.stderr or "").strip() or "no output"
            raise BackendFailure(
                RuntimeKind.SESSION_RESUMABLE.value,
                f"claude exited with status {e.exit_code}: {detail}",
            ) from e

    @staticmethod
    async def _interrupt(client: ClaudeSDKClient) -> None:
        try:
            await client.interrupt()
        except Exception as e:
            log.debug(f"Claude interrupt failed: {e}")
