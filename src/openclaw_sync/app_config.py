from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    state_dir: str | None
    db_path: str | None


@dataclass
class AppConfig:
    state_dir: str
    db_path: str
    stability_threshold_ms: int
    poll_interval_ms: int
    suppression_window_seconds: float
    store_timeout_seconds: float
    watch_retry_seconds: float
    initial_scan: bool
    event_log_enabled: bool
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        state_dir=str(config.get("StateDir", "~/.openclaw")),
        db_path=str(config.get("DbPath", ".openclaw_sync/sync.db")),
        stability_threshold_ms=int(config.get("StabilityThresholdMs", 300)),
        poll_interval_ms=int(config.get("PollIntervalMs", 100)),
        suppression_window_seconds=float(config.get("SuppressionWindowSeconds", 5)),
        store_timeout_seconds=float(config.get("StoreTimeoutSeconds", 5)),
        watch_retry_seconds=float(config.get("WatchRetrySeconds", 5)),
        initial_scan=_to_bool(config.get("InitialScan", True), default=True),
        event_log_enabled=_to_bool(config.get("EventLogEnabled", True), default=True),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        state_dir=os.environ.get("OPENCLAW_STATE_DIR") or None,
        db_path=os.environ.get("OPENCLAW_SYNC_DB") or None,
    )
