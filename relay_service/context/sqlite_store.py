"""SQLite-backed session store implementing SessionStore with WAL + safe PRAGMAs"""
from __future__ import annotations

import datetime
import sqlite3
from pathlib import Path
from typing import Optional

from relay_service.core.interfaces import SessionStore
from relay_service.core.session import SessionState


class SqliteSessionStore(SessionStore):
    def __init__(self, dsn: str = "sqlite:///./data/relay.db"):
        if dsn.startswith("sqlite:///"):
            path = dsn[len("sqlite:///") :]
        else:
            path = dsn

        if path == ":memory:":
            target = path
        else:
            p = Path(path).expanduser().resolve()
            p.parent.mkdir(parents=True, exist_ok=True)
            target = str(p)

        self.conn = sqlite3.connect(target, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_pragmas()
        self._init_schema()

    def _init_pragmas(self) -> None:
        cur = self.conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA synchronous=NORMAL;")
        self.conn.commit()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                conversation_id TEXT PRIMARY KEY,
                access_token TEXT NOT NULL,
                remote_agent_url TEXT,
                updated_at TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        row = self.conn.execute(
            "SELECT access_token, remote_agent_url FROM sessions WHERE conversation_id = ?",
            (conversation_id,),
        ).fetchone()
        if row is None:
            return None
        return SessionState(access_token=row["access_token"], remote_agent_url=row["remote_agent_url"])

    async def save(self, conversation_id: str, state: SessionState) -> None:
        ts = datetime.datetime.now(datetime.timezone.utc).isoformat()
        self.conn.execute(
            """
            INSERT INTO sessions(conversation_id, access_token, remote_agent_url, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(conversation_id) DO UPDATE SET
                access_token = excluded.access_token,
                remote_agent_url = excluded.remote_agent_url,
                updated_at = excluded.updated_at
            """,
            (conversation_id, state.access_token, state.remote_agent_url, ts),
        )
        self.conn.commit()

    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation's stored session. Returns True if deleted, False if not found."""
        cur = self.conn.cursor()
        cur.execute("DELETE FROM sessions WHERE conversation_id = ?", (conversation_id,))
        deleted_count = cur.rowcount
        self.conn.commit()
        return deleted_count > 0

    def close(self) -> None:
        self.conn.close()
