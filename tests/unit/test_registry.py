"""Tests for runtime construction."""

from __future__ import annotations

import pytest

from agentswitch.events import RuntimeKind
from agentswitch.identity import SessionIdentityStore
from agentswitch.runtimes import RuntimeFactory, create_runtime
from agentswitch.runtimes.claude import SessionResumableRuntime
from agentswitch.runtimes.codex import ThreadBasedRuntime
from agentswitch.runtimes.graph import GraphCheckpointRuntime


@pytest.mark.parametrize(
    ("kind", "cls"),
    [
        (RuntimeKind.GRAPH_CHECKPOINT, GraphCheckpointRuntime),
        ("claude-sdk", SessionResumableRuntime),
        ("thread-based", ThreadBasedRuntime),
    ],
)
def test_create_runtime(identities: SessionIdentityStore, kind: object, cls: type) -> None:
    runtime = create_runtime(kind, identities=identities)
    assert isinstance(runtime, cls)


def test_unknown_runtime(identities: SessionIdentityStore) -> None:
    with pytest.raises(ValueError, match="Unknown runtime"):
        create_runtime("gemini", identities=identities)


def test_factory_reuses_instances(identities: SessionIdentityStore) -> None:
    factory = RuntimeFactory(identities=identities)
    first = factory.create(RuntimeKind.THREAD_BASED)
    assert factory.create(RuntimeKind.THREAD_BASED) is first
    assert factory.create(RuntimeKind.SESSION_RESUMABLE) is not first
