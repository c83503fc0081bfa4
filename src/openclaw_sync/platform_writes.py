from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from uuid import uuid4

from loguru import logger

from openclaw_sync.classifier import AGENTS_SEGMENT, CONFIG_NAME
from openclaw_sync.store import ConfigRepository
from openclaw_sync.suppression import PlatformWriteRegistry
from openclaw_sync.syncers.common import load_document
from openclaw_sync.syncers.config import extract_config_entries, is_enabled


class PlatformConfigWriter:
    """Writes a tenant's ``openclaw.json`` on the platform's behalf.

    The content hash is registered before the bytes reach disk so the
    engine's own watch of the file recognises the echo and skips it.
    """

    def __init__(
        self,
        state_dir: str | Path,
        registry: PlatformWriteRegistry,
        configs: ConfigRepository | None = None,
    ):
        self._state_dir = Path(state_dir).expanduser()
        self._registry = registry
        self._configs = configs

    def config_path(self, tenant_id: str) -> Path:
        if not tenant_id or tenant_id in {".", ".."} or "/" in tenant_id or "\\" in tenant_id:
            raise ValueError(f"Invalid tenant id: {tenant_id!r}")
        return self._state_dir / AGENTS_SEGMENT / tenant_id / CONFIG_NAME

    def read_config(self, tenant_id: str) -> dict[str, Any]:
        path = self.config_path(tenant_id)
        if not path.exists():
            return {}
        return load_document(path, None)

    def write_config(self, tenant_id: str, document: dict[str, Any]) -> str:
        """Replace the tenant's config document. Returns the registered digest."""
        path = self.config_path(tenant_id)
        data = (json.dumps(document, indent=2, ensure_ascii=False) + "\n").encode("utf-8")
        digest = self._registry.register_content(data, path=path)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        if self._configs is not None:
            for config_type, config_key, value in extract_config_entries(document):
                self._configs.upsert_config(
                    tenant_id,
                    config_type,
                    config_key,
                    value,
                    enabled=is_enabled(value),
                    origin="platform",
                )
        logger.info(f"Platform wrote config for {tenant_id} ({digest[:12]})")
        return digest

    def set_value(self, tenant_id: str, dotted_key: str, value: Any) -> str:
        """Set one nested value, e.g. ``channels.telegram.enabled``, and rewrite the file."""
        keys = [part for part in dotted_key.split(".") if part]
        if not keys:
            raise ValueError("Config key must not be empty")

        document = self.read_config(tenant_id)
        node = document
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[keys[-1]] = value
        return self.write_config(tenant_id, document)
