from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from loguru import logger

from openclaw_sync.store import ConfigRepository
from openclaw_sync.syncers.common import SyncResult, load_document

# Top-level section -> config_type; each key inside becomes one row.
KEYED_SECTIONS: dict[str, str] = {
    "channels": "channel",
    "models": "model",
    "tools": "tool",
}
AGENT_CONFIG_TYPE = "agent"
AGENT_DEFAULT_KEY = "default"


def extract_config_entries(document: dict[str, Any]) -> list[tuple[str, str, Any]]:
    """Flatten a config document into (config_type, config_key, value) triples.

    Absent or non-object sections and a null default agent are skipped.
    """
    entries: list[tuple[str, str, Any]] = []
    for section, config_type in KEYED_SECTIONS.items():
        values = document.get(section)
        if not isinstance(values, dict):
            continue
        for key, value in values.items():
            entries.append((config_type, str(key), value))

    agents = document.get("agents")
    if isinstance(agents, dict) and agents.get(AGENT_DEFAULT_KEY) is not None:
        entries.append((AGENT_CONFIG_TYPE, AGENT_DEFAULT_KEY, agents[AGENT_DEFAULT_KEY]))
    return entries


def is_enabled(value: Any) -> bool:
    if isinstance(value, dict) and isinstance(value.get("enabled"), bool):
        return value["enabled"]
    return True


class ConfigSyncer:
    def __init__(self, configs: ConfigRepository):
        self._configs = configs

    def sync(self, tenant_id: str, path: Path, content: bytes | None = None) -> SyncResult:
        document = load_document(Path(path), content)

        result = SyncResult()
        for config_type, config_key, value in extract_config_entries(document):
            try:
                self._configs.upsert_config(
                    tenant_id,
                    config_type,
                    config_key,
                    value,
                    enabled=is_enabled(value),
                    origin="sync",
                )
            except sqlite3.IntegrityError as ex:
                result.failed += 1
                logger.warning(f"Could not store config {tenant_id}/{config_type}/{config_key}: {ex}")
                continue
            result.processed += 1
        return result
