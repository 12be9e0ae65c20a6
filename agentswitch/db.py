"""Database initialization and repositories.

Provides:
- Schema initialization
- ConversationRepository: CRUD for conversations table
- SettingsRepository: key/value application settings
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

log = logging.getLogger("db")

WORKSPACE_PATH_KEY = "workspacePath"
RUNTIME_OVERRIDE_KEY = "agentRuntime"
DEFAULT_RUNTIME_SETTING = "agent_runtime_default"


@dataclass
class Conversation:
    """Conversation record.

    ``metadata`` is kept as the raw stored JSON text; callers parse it with
    parse_metadata() so a corrupt blob never takes the record down with it.
    """

    id: str
    title: str | None
    metadata: str | None
    created_at: str
    updated_at: str

    @property
    def working_directory(self) -> str | None:
        value = parse_metadata(self.metadata).get(WORKSPACE_PATH_KEY)
        if isinstance(value, str) and value.strip():
            return value
        return None


def parse_metadata(raw: str | None) -> dict:
    """Decode a metadata blob. Missing or unparsable data reads as empty."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        log.warning(f"Ignoring unparsable conversation metadata: {e}")
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring conversation metadata that is not an object")
        return {}
    return data


class ConversationRepository:
    """Repository for conversations table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _row_to_conversation(self, row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            title=row["title"],
            metadata=row["metadata"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get(self, conversation_id: str) -> Conversation | None:
        row = self.conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return self._row_to_conversation(row) if row else None

    def list_recent(self, limit: int = 50) -> list[Conversation]:
        rows = self.conn.execute(
            "SELECT * FROM conversations ORDER BY updated_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_conversation(row) for row in rows]

    def create(
        self,
        *,
        title: str | None = None,
        working_directory: str | None = None,
        conversation_id: str | None = None,
    ) -> Conversation:
        now = datetime.now().isoformat()
        conversation_id = conversation_id or uuid.uuid4().hex
        metadata: dict[str, object] = {}
        if working_directory:
            metadata[WORKSPACE_PATH_KEY] = working_directory
        self.conn.execute(
            """INSERT INTO conversations (id, title, metadata, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            (conversation_id, title, json.dumps(metadata), now, now),
        )
        self.conn.commit()
        created = self.get(conversation_id)
        if not created:
            raise RuntimeError(f"Failed to load newly created conversation: {conversation_id}")
        return created

    def update_metadata(self, conversation_id: str, partial: dict) -> bool:
        """Merge ``partial`` into the stored metadata, key by key.

        A None value removes the key. Returns False if the conversation
        does not exist.
        """
        conversation = self.get(conversation_id)
        if not conversation:
            return False
        metadata = parse_metadata(conversation.metadata)
        for key, value in partial.items():
            if value is None:
                metadata.pop(key, None)
            else:
                metadata[key] = value
        self.conn.execute(
            "UPDATE conversations SET metadata = ?, updated_at = ? WHERE id = ?",
            (json.dumps(metadata), datetime.now().isoformat(), conversation_id),
        )
        self.conn.commit()
        return True

    def delete(self, conversation_id: str) -> None:
        self.conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        self.conn.commit()


class SettingsRepository:
    """Repository for the settings key/value table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self.conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        else:
            self.conn.execute(
                """INSERT INTO settings (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
                (key, value),
            )
        self.conn.commit()


def init_db(path: Path | str = ":memory:") -> sqlite3.Connection:
    """Initialize SQLite database with schema."""
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.OperationalError:
        # Best-effort; some environments may reject specific pragmas.
        pass

    conn.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id TEXT PRIMARY KEY,
            title TEXT,
            metadata TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_conversations_updated_at ON conversations(updated_at DESC)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """)

    conn.commit()
    return conn
