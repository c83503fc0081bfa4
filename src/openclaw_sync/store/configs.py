from __future__ import annotations

import json
import sqlite3
from typing import Any, Literal

from openclaw_sync.store.models import ConfigRecord
from openclaw_sync.store.store import SyncStore
from openclaw_sync.timestamps import utc_now

WriteOrigin = Literal["sync", "platform"]


class ConfigRepository:
    def __init__(self, store: SyncStore):
        self._store = store

    def upsert_config(
        self,
        tenant_id: str,
        config_type: str,
        config_key: str,
        config_value: Any,
        *,
        enabled: bool = True,
        origin: WriteOrigin = "sync",
    ) -> None:
        """Insert or update one config row.

        Both origins write the same row. Only sync-originated writes stamp
        ``synced_at``; every write stamps ``updated_at``.
        """
        now = utc_now()
        synced_at = now if origin == "sync" else None
        with self._store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO tenant_configs (
                    tenant_id, config_type, config_key, config_value_json, enabled, updated_at, synced_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id, config_type, config_key) DO UPDATE SET
                    config_value_json = excluded.config_value_json,
                    enabled = excluded.enabled,
                    updated_at = excluded.updated_at,
                    synced_at = COALESCE(excluded.synced_at, tenant_configs.synced_at)
                """,
                (
                    tenant_id,
                    config_type,
                    config_key,
                    json.dumps(config_value, ensure_ascii=True),
                    1 if enabled else 0,
                    now,
                    synced_at,
                ),
            )

    def get_config(self, tenant_id: str, config_type: str, config_key: str) -> ConfigRecord | None:
        row = self._store.execute(
            """
            SELECT *
            FROM tenant_configs
            WHERE tenant_id = ? AND config_type = ? AND config_key = ?
            LIMIT 1
            """,
            (tenant_id, config_type, config_key),
        ).fetchone()
        if row is None:
            return None
        return _config_from_row(row)

    def list_configs(self, tenant_id: str) -> list[ConfigRecord]:
        rows = self._store.execute(
            """
            SELECT *
            FROM tenant_configs
            WHERE tenant_id = ?
            ORDER BY config_type ASC, config_key ASC
            """,
            (tenant_id,),
        ).fetchall()
        return [_config_from_row(row) for row in rows]


def _config_from_row(row: sqlite3.Row) -> ConfigRecord:
    return ConfigRecord(
        tenant_id=row["tenant_id"],
        config_type=row["config_type"],
        config_key=row["config_key"],
        config_value_json=row["config_value_json"],
        enabled=bool(row["enabled"]),
        updated_at=row["updated_at"],
        synced_at=row["synced_at"],
    )
