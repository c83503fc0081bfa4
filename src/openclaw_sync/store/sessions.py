from __future__ import annotations

import json
import sqlite3

from openclaw_sync.store.models import MessageRecord, SessionRecord
from openclaw_sync.store.store import SyncStore

# Keeps the later of the stored and incoming timestamp; NULL never wins.
_MONOTONIC_LAST_MESSAGE_AT = (
    "NULLIF(MAX(COALESCE(sessions.last_message_at, ''), COALESCE({incoming}, '')), '')"
)


class SessionRepository:
    def __init__(self, store: SyncStore):
        self._store = store

    def session_exists(self, tenant_id: str, session_id: str) -> bool:
        row = self._store.execute(
            "SELECT 1 FROM sessions WHERE tenant_id = ? AND session_id = ? LIMIT 1",
            (tenant_id, session_id),
        ).fetchone()
        return row is not None

    def get_session(self, tenant_id: str, session_id: str) -> SessionRecord | None:
        row = self._store.execute(
            "SELECT * FROM sessions WHERE tenant_id = ? AND session_id = ? LIMIT 1",
            (tenant_id, session_id),
        ).fetchone()
        if row is None:
            return None
        return _session_from_row(row)

    def list_sessions(self, tenant_id: str) -> list[SessionRecord]:
        rows = self._store.execute(
            "SELECT * FROM sessions WHERE tenant_id = ? ORDER BY session_id ASC",
            (tenant_id,),
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def ensure_session(self, tenant_id: str, session_id: str) -> bool:
        """Create an empty session row if none exists. Returns True when created."""
        if self.session_exists(tenant_id, session_id):
            return False
        with self._store.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO sessions (tenant_id, session_id)
                VALUES (?, ?)
                ON CONFLICT(tenant_id, session_id) DO NOTHING
                """,
                (tenant_id, session_id),
            )
        return cursor.rowcount > 0

    def upsert_session(
        self,
        tenant_id: str,
        session_id: str,
        *,
        channel: str | None,
        started_at: str | None,
        last_message_at: str | None,
        metadata: dict,
    ) -> None:
        with self._store.transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO sessions (tenant_id, session_id, channel, started_at, last_message_at, metadata_json)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id, session_id) DO UPDATE SET
                    channel = COALESCE(excluded.channel, sessions.channel),
                    started_at = COALESCE(sessions.started_at, excluded.started_at),
                    last_message_at = {_MONOTONIC_LAST_MESSAGE_AT.format(incoming="excluded.last_message_at")},
                    metadata_json = excluded.metadata_json
                """,
                (
                    tenant_id,
                    session_id,
                    channel,
                    started_at,
                    last_message_at,
                    json.dumps(metadata, ensure_ascii=True),
                ),
            )

    def upsert_message(self, record: MessageRecord) -> None:
        with self._store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO messages (
                    tenant_id, session_id, line_no, line_hash, role, content, token_count, created_at, metadata_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id, session_id, line_no) DO UPDATE SET
                    line_hash = excluded.line_hash,
                    role = excluded.role,
                    content = excluded.content,
                    token_count = excluded.token_count,
                    created_at = excluded.created_at,
                    metadata_json = excluded.metadata_json
                """,
                (
                    record.tenant_id,
                    record.session_id,
                    record.line_no,
                    record.line_hash,
                    record.role,
                    record.content,
                    record.token_count,
                    record.created_at,
                    record.metadata_json,
                ),
            )

    def finish_log_pass(
        self,
        tenant_id: str,
        session_id: str,
        *,
        message_count: int,
        first_message_at: str,
        last_message_at: str,
    ) -> None:
        with self._store.transaction() as conn:
            conn.execute(
                f"""
                UPDATE sessions SET
                    message_count = ?,
                    started_at = COALESCE(started_at, ?),
                    last_message_at = {_MONOTONIC_LAST_MESSAGE_AT.format(incoming="?")}
                WHERE tenant_id = ? AND session_id = ?
                """,
                (message_count, first_message_at, last_message_at, tenant_id, session_id),
            )

    def list_messages(self, tenant_id: str, session_id: str) -> list[MessageRecord]:
        rows = self._store.execute(
            """
            SELECT *
            FROM messages
            WHERE tenant_id = ? AND session_id = ?
            ORDER BY line_no ASC
            """,
            (tenant_id, session_id),
        ).fetchall()
        return [_message_from_row(row) for row in rows]


def _session_from_row(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        tenant_id=row["tenant_id"],
        session_id=row["session_id"],
        channel=row["channel"],
        started_at=row["started_at"],
        last_message_at=row["last_message_at"],
        message_count=int(row["message_count"]),
        metadata_json=row["metadata_json"],
    )


def _message_from_row(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        tenant_id=row["tenant_id"],
        session_id=row["session_id"],
        line_no=int(row["line_no"]),
        line_hash=row["line_hash"],
        role=row["role"],
        content=row["content"],
        token_count=row["token_count"],
        created_at=row["created_at"],
        metadata_json=row["metadata_json"],
    )
