from __future__ import annotations

import sqlite3
from pathlib import Path

from loguru import logger

from openclaw_sync.store import SessionRepository
from openclaw_sync.syncers.common import MalformedDocumentError, SyncResult, load_document
from openclaw_sync.timestamps import parse_timestamp


class SessionIndexSyncer:
    def __init__(self, sessions: SessionRepository):
        self._sessions = sessions

    def sync(self, tenant_id: str, path: Path, content: bytes | None = None) -> SyncResult:
        path = Path(path)
        document = load_document(path, content)

        # Validate everything up front: a corrupt index is never partially applied.
        for session_id, entry in document.items():
            if not isinstance(entry, dict):
                raise MalformedDocumentError(
                    f"{path.name} entry {session_id!r} must be an object, got {type(entry).__name__}"
                )

        result = SyncResult()
        for session_id, entry in document.items():
            channel = entry.get("channel")
            try:
                self._sessions.upsert_session(
                    tenant_id,
                    session_id,
                    channel=str(channel) if channel is not None else None,
                    started_at=parse_timestamp(entry.get("startedAt")),
                    last_message_at=parse_timestamp(entry.get("updatedAt")),
                    metadata=entry,
                )
            except sqlite3.IntegrityError as ex:
                result.failed += 1
                logger.warning(f"Could not store session {tenant_id}/{session_id} from index: {ex}")
                continue
            result.processed += 1
        return result
