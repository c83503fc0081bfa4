from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any


class SyncStore:
    """SQLite store shared by the sync workers.

    Every thread gets its own connection so passes running in worker threads
    never interleave statements on one connection. Writers wait at most
    ``timeout_seconds`` for the database lock before sqlite raises
    ``OperationalError``.
    """

    def __init__(self, db_path: str, *, timeout_seconds: float = 5.0):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout_seconds = timeout_seconds
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._closed = False
        self._initialize_schema()

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._closed = True
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        return self._connection().execute(query, params)

    def executemany(self, query: str, seq_of_params: list[tuple[Any, ...]]) -> sqlite3.Cursor:
        return self._connection().executemany(query, seq_of_params)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        with self._lock:
            if self._closed:
                raise sqlite3.ProgrammingError("Store is closed")
            conn = sqlite3.connect(self._db_path, timeout=self._timeout_seconds, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._connections.append(conn)
        self._local.conn = conn
        return conn

    def _initialize_schema(self) -> None:
        conn = self._connection()
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                tenant_id TEXT NOT NULL,
                session_id TEXT NOT NULL,
                channel TEXT NULL,
                started_at TEXT NULL,
                last_message_at TEXT NULL,
                message_count INTEGER NOT NULL DEFAULT 0 CHECK (message_count >= 0),
                metadata_json TEXT NOT NULL DEFAULT '{}',
                PRIMARY KEY (tenant_id, session_id)
            );

            CREATE TABLE IF NOT EXISTS messages (
                tenant_id TEXT NOT NULL,
                session_id TEXT NOT NULL,
                line_no INTEGER NOT NULL,
                line_hash TEXT NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                content TEXT NULL,
                token_count INTEGER NULL,
                created_at TEXT NOT NULL,
                metadata_json TEXT NULL,
                PRIMARY KEY (tenant_id, session_id, line_no)
            );

            CREATE TABLE IF NOT EXISTS tenant_configs (
                tenant_id TEXT NOT NULL,
                config_type TEXT NOT NULL CHECK (config_type IN ('channel', 'model', 'tool', 'agent')),
                config_key TEXT NOT NULL,
                config_value_json TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1 CHECK (enabled IN (0, 1)),
                updated_at TEXT NOT NULL,
                synced_at TEXT NULL,
                PRIMARY KEY (tenant_id, config_type, config_key)
            );

            CREATE TABLE IF NOT EXISTS sync_events (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NULL,
                kind TEXT NOT NULL,
                path TEXT NOT NULL,
                outcome TEXT NOT NULL CHECK (outcome IN ('synced', 'suppressed', 'dropped', 'failed')),
                detail_json TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_session_created
                ON messages(tenant_id, session_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_sync_events_tenant_created
                ON sync_events(tenant_id, created_at);
            """
        )
        conn.commit()
