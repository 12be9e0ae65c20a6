"""Claude session-resumable runtime package."""

from agentswitch.runtimes.claude.client import ClaudeAgentClient
from agentswitch.runtimes.claude.runner import SessionResumableRuntime

__all__ = ["ClaudeAgentClient", "SessionResumableRuntime"]
