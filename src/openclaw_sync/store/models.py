from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionRecord:
    tenant_id: str
    session_id: str
    channel: str | None
    started_at: str | None
    last_message_at: str | None
    message_count: int
    metadata_json: str


@dataclass(frozen=True)
class MessageRecord:
    tenant_id: str
    session_id: str
    line_no: int
    line_hash: str
    role: str
    content: str | None
    token_count: int | None
    created_at: str
    metadata_json: str | None


@dataclass(frozen=True)
class ConfigRecord:
    tenant_id: str
    config_type: str
    config_key: str
    config_value_json: str
    enabled: bool
    updated_at: str
    synced_at: str | None
