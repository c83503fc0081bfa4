from __future__ import annotations

import hashlib
import json
import sqlite3
from pathlib import Path
from typing import Any

from loguru import logger

from openclaw_sync.store import MessageRecord, SessionRepository
from openclaw_sync.syncers.common import SyncResult, read_bytes
from openclaw_sync.timestamps import parse_timestamp


class SessionLogSyncer:
    """Re-scans a session transcript and upserts one message per valid line.

    Messages are keyed by their 1-based physical line number, so a re-scan of
    an unchanged file rewrites the same rows and a partially written last
    line is picked up once the agent finishes it.
    """

    def __init__(self, sessions: SessionRepository):
        self._sessions = sessions

    def sync(self, tenant_id: str, path: Path, content: bytes | None = None) -> SyncResult:
        path = Path(path)
        session_id = path.stem
        data = read_bytes(path, content)

        if self._sessions.ensure_session(tenant_id, session_id):
            logger.info(f"Created session {tenant_id}/{session_id} from transcript")

        result = SyncResult()
        first_at: str | None = None
        last_at: str | None = None

        for line_no, raw_line in enumerate(data.split(b"\n"), start=1):
            raw_line = raw_line.rstrip(b"\r")
            if not raw_line.strip():
                continue

            try:
                record = _parse_line(tenant_id, session_id, line_no, raw_line)
            except ValueError as ex:
                result.skipped += 1
                logger.warning(f"Skipping malformed line {line_no} in {path}: {ex}")
                continue

            try:
                self._sessions.upsert_message(record)
            except sqlite3.IntegrityError as ex:
                result.failed += 1
                logger.warning(f"Could not store line {line_no} of {tenant_id}/{session_id}: {ex}")
                continue

            result.processed += 1
            if first_at is None or record.created_at < first_at:
                first_at = record.created_at
            if last_at is None or record.created_at > last_at:
                last_at = record.created_at

        if first_at is not None and last_at is not None:
            self._sessions.finish_log_pass(
                tenant_id,
                session_id,
                message_count=result.processed,
                first_message_at=first_at,
                last_message_at=last_at,
            )
        return result


def _parse_line(tenant_id: str, session_id: str, line_no: int, raw_line: bytes) -> MessageRecord:
    try:
        entry = json.loads(raw_line.decode("utf-8"))
    except UnicodeDecodeError as ex:
        raise ValueError(f"not UTF-8 ({ex.reason})") from ex
    except json.JSONDecodeError as ex:
        raise ValueError(f"invalid JSON ({ex.msg})") from ex
    if not isinstance(entry, dict):
        raise ValueError(f"expected an object, got {type(entry).__name__}")

    created_at = parse_timestamp(entry.get("timestamp"))
    if created_at is None:
        raise ValueError("missing or unparseable timestamp")

    metadata = entry.get("metadata")
    return MessageRecord(
        tenant_id=tenant_id,
        session_id=session_id,
        line_no=line_no,
        line_hash=hashlib.sha256(raw_line).hexdigest(),
        role=str(entry.get("role") or "user"),
        content=_content_text(entry.get("content")),
        token_count=_token_count(entry.get("tokenCount")),
        created_at=created_at,
        metadata_json=json.dumps(metadata, ensure_ascii=True) if metadata is not None else None,
    )


def _content_text(content: Any) -> str | None:
    if content is None or isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=True)


def _token_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
