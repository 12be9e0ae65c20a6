"""Runtime adapter exceptions.

Backends raise these internally; the adapter boundary turns every one of
them into a terminal error event (or silence, for cancellation noise) so
nothing above the coordinator sees a raw exception.
"""

from __future__ import annotations

import asyncio


class AgentSwitchError(RuntimeError):
    """Base class for agentswitch errors."""


class BackendFailure(AgentSwitchError):
    """The native execution call failed."""

    def __init__(self, runtime: str, detail: str):
        self.runtime = runtime
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"{self.runtime}: {self.detail}"


class UnsupportedOperation(AgentSwitchError):
    """A runtime lacks a capability the protocol names."""

    def __init__(self, runtime: str, operation: str):
        self.runtime = runtime
        self.operation = operation
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"{self.operation} is not supported by the {self.runtime} runtime"


class WorkspaceRequired(AgentSwitchError):
    """The conversation has no working directory to run in."""

    code = "WORKSPACE_REQUIRED"

    def __str__(self) -> str:
        return "Please select a workspace folder before sending messages."


_CANCELLATION_NEEDLES = (
    "aborted",
    "abort",
    "controller is already closed",
    "cancelled",
    "canceled",
    "connector is closed",
    "server disconnected",
)


def is_cancellation_noise(exc: BaseException) -> bool:
    """True for failures that are a side effect of cancelling a run."""
    if isinstance(exc, asyncio.CancelledError):
        return True
    if type(exc).__name__ == "AbortError":
        return True
    msg = str(exc).lower()
    return any(n in msg for n in _CANCELLATION_NEEDLES)


def describe_failure(exc: BaseException) -> str:
    """Human-readable message for a terminal error event."""
    text = str(exc).strip()
    if text:
        return text
    return f"{type(exc).__name__} (no details)"
