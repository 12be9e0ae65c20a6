"""Tests for the sqlite conversation and settings repositories."""

from __future__ import annotations

import json
import sqlite3

from agentswitch.db import (
    WORKSPACE_PATH_KEY,
    ConversationRepository,
    SettingsRepository,
    parse_metadata,
)


def test_create_and_get(conversations: ConversationRepository) -> None:
    created = conversations.create(title="First", working_directory="/work")
    loaded = conversations.get(created.id)
    assert loaded is not None
    assert loaded.title == "First"
    assert loaded.working_directory == "/work"
    assert parse_metadata(loaded.metadata) == {WORKSPACE_PATH_KEY: "/work"}


def test_create_with_explicit_id(conversations: ConversationRepository) -> None:
    created = conversations.create(conversation_id="c1")
    assert created.id == "c1"
    assert created.working_directory is None


def test_get_missing(conversations: ConversationRepository) -> None:
    assert conversations.get("nope") is None


def test_update_metadata_merges_single_keys(conversations: ConversationRepository) -> None:
    conversations.create(conversation_id="c1", working_directory="/work")
    assert conversations.update_metadata("c1", {"agentRuntime": "thread-based"})
    assert conversations.update_metadata("c1", {"threadBasedSessionId": "t-1"})

    metadata = parse_metadata(conversations.get("c1").metadata)
    assert metadata == {
        WORKSPACE_PATH_KEY: "/work",
        "agentRuntime": "thread-based",
        "threadBasedSessionId": "t-1",
    }


def test_update_metadata_none_deletes_key(conversations: ConversationRepository) -> None:
    conversations.create(conversation_id="c1", working_directory="/work")
    conversations.update_metadata("c1", {"agentRuntime": "codex"})
    conversations.update_metadata("c1", {"agentRuntime": None})
    assert parse_metadata(conversations.get("c1").metadata) == {WORKSPACE_PATH_KEY: "/work"}


def test_update_metadata_missing_conversation(conversations: ConversationRepository) -> None:
    assert not conversations.update_metadata("ghost", {"a": 1})


def test_corrupt_metadata_reads_as_empty_and_is_repaired(
    conn: sqlite3.Connection, conversations: ConversationRepository
) -> None:
    conversations.create(conversation_id="c1")
    conn.execute("UPDATE conversations SET metadata = ? WHERE id = ?", ("{not json", "c1"))
    conn.commit()

    assert parse_metadata(conversations.get("c1").metadata) == {}
    assert conversations.get("c1").working_directory is None

    conversations.update_metadata("c1", {"k": "v"})
    assert json.loads(conversations.get("c1").metadata) == {"k": "v"}


def test_non_object_metadata_reads_as_empty() -> None:
    assert parse_metadata("[1, 2]") == {}
    assert parse_metadata(None) == {}
    assert parse_metadata("") == {}


def test_list_recent_and_delete(conversations: ConversationRepository) -> None:
    conversations.create(conversation_id="a")
    conversations.create(conversation_id="b")
    assert {c.id for c in conversations.list_recent()} == {"a", "b"}
    conversations.delete("a")
    assert [c.id for c in conversations.list_recent()] == ["b"]


def test_settings_roundtrip(settings: SettingsRepository) -> None:
    assert settings.get("k") is None
    settings.set("k", "one")
    settings.set("k", "two")
    assert settings.get("k") == "two"
    settings.set("k", None)
    assert settings.get("k") is None
