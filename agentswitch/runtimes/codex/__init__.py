"""Codex thread-based runtime package."""

from agentswitch.runtimes.codex.client import CodexCliClient, SandboxMode
from agentswitch.runtimes.codex.runner import ThreadBasedRuntime

__all__ = ["CodexCliClient", "SandboxMode", "ThreadBasedRuntime"]
