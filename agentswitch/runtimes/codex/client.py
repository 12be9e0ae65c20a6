"""Codex CLI client.

``codex exec`` reads the prompt from stdin and closes it, so the turn cannot
ask for approval once it is running; the sandbox policy has to be chosen
before the process starts.
"""

from __future__ import annotations

import enum
import logging
from typing import AsyncIterator

from agentswitch.config import CodexConfig
from agentswitch.errors import BackendFailure
from agentswitch.events import CancelToken, RuntimeKind
from agentswitch.runtimes.pipeline import JSONLineStats, iter_json_lines
from agentswitch.runtimes.subprocess_transport import SubprocessTransport

log = logging.getLogger("codex")


class SandboxMode(str, enum.Enum):
    READ_ONLY = "read-only"
    WORKSPACE_WRITE = "workspace-write"


class CodexCliClient:
    """Spawns ``codex exec`` for each turn and streams its thread events."""

    def __init__(self, config: CodexConfig | None = None):
        self._config = config or CodexConfig()

    def _build_command(
        self,
        *,
        model: str,
        sandbox: SandboxMode,
        cwd: str,
        thread_id: str | None,
    ) -> list[str]:
        cmd = [
            self._config.resolve_bin(),
            "exec",
            "--experimental-json",
            "--model", model,
            "--sandbox", sandbox.value,
            "--cd", cwd,
            "--skip-git-repo-check",
            # Approval was decided before the turn started.
            "--config", 'approval_policy="never"',
        ]
        if thread_id:
            cmd.extend(["resume", thread_id])
        return cmd

    async def run_streamed(
        self,
        prompt: str,
        *,
        cwd: str,
        model: str,
        sandbox: SandboxMode,
        thread_id: str | None,
        token: CancelToken,
    ) -> AsyncIterator[dict]:
        """Run one turn, yielding each thread event record."""
        transport = SubprocessTransport()
        token.add_callback(transport.cancel)
        stats = JSONLineStats()
        try:
            stdout = await transport.start(
                self._build_command(model=model, sandbox=sandbox, cwd=cwd, thread_id=thread_id),
                cwd=cwd,
                stdout_limit=10 * 1024 * 1024,
                env=self._config.build_env(),
                with_stdin=True,
            )
            await transport.write_text(prompt)
            transport.close_stdin()

            async for record in iter_json_lines(stdout, stats):
                yield record

            returncode = await transport.wait()
            if token.cancelled or returncode == 0:
                return
            detail = "\n".join(stats.non_json_lines[-10:]) or "no output"
            raise BackendFailure(
                RuntimeKind.THREAD_BASED.value,
                f"codex exited with status {returncode}: {detail}",
            )
        finally:
            token.remove_callback(transport.cancel)
            await transport.cancel_and_kill()
