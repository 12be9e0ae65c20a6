"""Tests for runtime selection precedence."""

from __future__ import annotations

import pytest

from agentswitch.config import RUNTIME_OVERRIDE_ENV
from agentswitch.db import ConversationRepository, SettingsRepository
from agentswitch.events import RuntimeKind
from agentswitch.selector import RuntimeSelector


@pytest.fixture()
def selector(
    conversations: ConversationRepository, settings: SettingsRepository
) -> RuntimeSelector:
    conversations.create(conversation_id="c1", working_directory="/work")
    return RuntimeSelector(conversations, settings)


def test_fallback(selector: RuntimeSelector) -> None:
    assert selector.resolve("c1") == RuntimeKind.GRAPH_CHECKPOINT
    assert selector.resolve("unknown") == RuntimeKind.GRAPH_CHECKPOINT


def test_conversation_override_beats_default(
    selector: RuntimeSelector, conversations: ConversationRepository
) -> None:
    conversations.update_metadata("c1", {"agentRuntime": "session-resumable"})
    selector.set_default(RuntimeKind.GRAPH_CHECKPOINT)
    assert selector.resolve("c1") == RuntimeKind.SESSION_RESUMABLE


def test_default_applies_without_override(selector: RuntimeSelector) -> None:
    selector.set_default(RuntimeKind.THREAD_BASED)
    assert selector.resolve("c1") == RuntimeKind.THREAD_BASED


def test_env_override_beats_everything(
    selector: RuntimeSelector, monkeypatch: pytest.MonkeyPatch
) -> None:
    selector.set_override("c1", RuntimeKind.SESSION_RESUMABLE)
    selector.set_default(RuntimeKind.GRAPH_CHECKPOINT)
    monkeypatch.setenv(RUNTIME_OVERRIDE_ENV, "thread-based")
    assert selector.resolve("c1") == RuntimeKind.THREAD_BASED


def test_invalid_values_fall_through(
    selector: RuntimeSelector,
    conversations: ConversationRepository,
    settings: SettingsRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv(RUNTIME_OVERRIDE_ENV, "not-a-runtime")
    conversations.update_metadata("c1", {"agentRuntime": "also-bad"})
    settings.set("agent_runtime_default", "codex")
    assert selector.resolve("c1") == RuntimeKind.THREAD_BASED

    settings.set("agent_runtime_default", "bad")
    assert selector.resolve("c1") == RuntimeKind.GRAPH_CHECKPOINT


def test_legacy_alias_is_accepted(
    selector: RuntimeSelector, conversations: ConversationRepository
) -> None:
    conversations.update_metadata("c1", {"agentRuntime": "claude-sdk"})
    assert selector.resolve("c1") == RuntimeKind.SESSION_RESUMABLE


def test_clearing_override_is_seen_on_next_resolve(selector: RuntimeSelector) -> None:
    selector.set_default(RuntimeKind.SESSION_RESUMABLE)
    assert selector.set_override("c1", RuntimeKind.THREAD_BASED)
    assert selector.resolve("c1") == RuntimeKind.THREAD_BASED
    assert selector.get_override("c1") == RuntimeKind.THREAD_BASED

    selector.set_override("c1", None)
    assert selector.get_override("c1") is None
    assert selector.resolve("c1") == RuntimeKind.SESSION_RESUMABLE


def test_set_override_on_missing_conversation(selector: RuntimeSelector) -> None:
    assert not selector.set_override("ghost", RuntimeKind.THREAD_BASED)


def test_clear_default(selector: RuntimeSelector) -> None:
    selector.set_default(RuntimeKind.THREAD_BASED)
    selector.set_default(None)
    assert selector.get_default() is None
