"""Runtime registry.

This provides a single place to map a runtime kind to its concrete
implementation. Callers should depend on the `RuntimeBackend` port.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from agentswitch.config import ClaudeConfig, CodexConfig, GraphConfig
from agentswitch.events import RuntimeKind, parse_runtime_kind
from agentswitch.identity import SessionIdentityStore
from agentswitch.ports import ApprovalPort

if TYPE_CHECKING:
    from agentswitch.runtimes.graph.runner import GraphFactory
    from agentswitch.runtimes.ports import RuntimeBackend


def create_runtime(
    kind: RuntimeKind | str,
    *,
    identities: SessionIdentityStore,
    approvals: ApprovalPort | None = None,
    graph_factory: GraphFactory | None = None,
    graph_config: GraphConfig | None = None,
    claude_config: ClaudeConfig | None = None,
    codex_config: CodexConfig | None = None,
) -> RuntimeBackend:
    resolved = parse_runtime_kind(kind)

    if resolved == RuntimeKind.GRAPH_CHECKPOINT:
        from agentswitch.runtimes.graph.runner import GraphCheckpointRuntime

        return GraphCheckpointRuntime(identities, graph_factory, config=graph_config)

    if resolved == RuntimeKind.SESSION_RESUMABLE:
        from agentswitch.runtimes.claude.runner import SessionResumableRuntime

        return SessionResumableRuntime(identities, approvals, config=claude_config)

    if resolved == RuntimeKind.THREAD_BASED:
        from agentswitch.runtimes.codex.runner import ThreadBasedRuntime

        return ThreadBasedRuntime(identities, approvals, config=codex_config)

    raise ValueError(f"Unknown runtime: {kind}")


class RuntimeFactory:
    """Builds each runtime once and hands out the same instance per kind.

    Runtimes keep per-run state in the stream they return, so one instance
    serves every conversation.
    """

    def __init__(
        self,
        *,
        identities: SessionIdentityStore,
        approvals: ApprovalPort | None = None,
        graph_factory: GraphFactory | None = None,
        graph_config: GraphConfig | None = None,
        claude_config: ClaudeConfig | None = None,
        codex_config: CodexConfig | None = None,
    ):
        self._identities = identities
        self._approvals = approvals
        self._graph_factory = graph_factory
        self._graph_config = graph_config
        self._claude_config = claude_config
        self._codex_config = codex_config
        self._runtimes: dict[RuntimeKind, RuntimeBackend] = {}

    def create(self, kind: RuntimeKind) -> RuntimeBackend:
        runtime = self._runtimes.get(kind)
        if runtime is None:
            runtime = create_runtime(
                kind,
                identities=self._identities,
                approvals=self._approvals,
                graph_factory=self._graph_factory,
                graph_config=self._graph_config,
                claude_config=self._claude_config,
                codex_config=self._codex_config,
            )
            self._runtimes[kind] = runtime
        return runtime
