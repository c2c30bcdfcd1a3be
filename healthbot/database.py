from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .models import ConversationId, Transcript


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TranscriptStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS transcripts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    user_prompt TEXT NOT NULL,
                    agent_reply TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_transcripts_conversation
                    ON transcripts (conversation_id, id);
                """
            )

    def _row_to_transcript(self, row: sqlite3.Row) -> Transcript:
        return Transcript(
            id=row["id"],
            conversation_id=row["conversation_id"],
            user_prompt=row["user_prompt"],
            agent_reply=row["agent_reply"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def save_transcript(
        self,
        conversation_id: ConversationId,
        user_prompt: str,
        agent_reply: str,
    ) -> Transcript:
        created_at = utc_now_iso()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO transcripts (conversation_id, user_prompt, agent_reply, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (str(conversation_id), user_prompt, agent_reply, created_at),
            )
            row = conn.execute("SELECT * FROM transcripts WHERE id = ?", (cur.lastrowid,)).fetchone()
            if row is None:
                raise RuntimeError("Failed to save transcript")
            return self._row_to_transcript(row)

    def list_conversation_ids(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT conversation_id FROM transcripts ORDER BY conversation_id ASC"
            ).fetchall()
            return [row["conversation_id"] for row in rows]

    def list_transcripts(self, conversation_id: ConversationId) -> list[Transcript]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM transcripts WHERE conversation_id = ? ORDER BY id ASC",
                (str(conversation_id),),
            ).fetchall()
            return [self._row_to_transcript(r) for r in rows]
