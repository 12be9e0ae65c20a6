"""Shared test configuration."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator

import pytest

from agentswitch.config import RUNTIME_OVERRIDE_ENV
from agentswitch.db import ConversationRepository, SettingsRepository, init_db
from agentswitch.identity import SessionIdentityStore


@pytest.fixture(autouse=True)
def _no_runtime_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's runtime override out of the tests."""
    monkeypatch.delenv(RUNTIME_OVERRIDE_ENV, raising=False)


@pytest.fixture()
def conn() -> Iterator[sqlite3.Connection]:
    connection = init_db(":memory:")
    yield connection
    connection.close()


@pytest.fixture()
def conversations(conn: sqlite3.Connection) -> ConversationRepository:
    return ConversationRepository(conn)


@pytest.fixture()
def settings(conn: sqlite3.Connection) -> SettingsRepository:
    return SettingsRepository(conn)


@pytest.fixture()
def identities(conversations: ConversationRepository) -> SessionIdentityStore:
    return SessionIdentityStore(conversations)
