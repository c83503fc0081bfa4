from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from openclaw_sync.app_config import AppConfig, RuntimeEnv
from openclaw_sync.classifier import ChangeKind
from openclaw_sync.engine import SyncEngine
from openclaw_sync.logging_config import setup_logging
from openclaw_sync.platform_writes import PlatformConfigWriter
from openclaw_sync.store import ConfigRepository, SessionRepository, SyncEventLog, SyncStore
from openclaw_sync.suppression import PlatformWriteRegistry
from openclaw_sync.syncers import ConfigSyncer, SessionIndexSyncer, SessionLogSyncer
from openclaw_sync.watcher import PathWatcher


@dataclass
class SyncRuntime:
    state_dir: Path
    store: SyncStore
    registry: PlatformWriteRegistry
    watcher: PathWatcher
    engine: SyncEngine
    event_log: SyncEventLog | None
    platform_writer: PlatformConfigWriter
    log_descriptions: list[str]
    engine_task: asyncio.Task | None = None


def resolve_state_dir(app: AppConfig, env: RuntimeEnv) -> Path:
    return Path(env.state_dir or app.state_dir).expanduser().absolute()


def resolve_db_path(app: AppConfig, env: RuntimeEnv) -> Path:
    db_path = Path(env.db_path or app.db_path).expanduser()
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    return db_path


async def bootstrap_runtime(app: AppConfig, env: RuntimeEnv, *, configure_logging: bool = True) -> SyncRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers) if configure_logging else []

    state_dir = resolve_state_dir(app, env)
    store = SyncStore(str(resolve_db_path(app, env)), timeout_seconds=app.store_timeout_seconds)
    sessions = SessionRepository(store)
    configs = ConfigRepository(store)
    registry = PlatformWriteRegistry(window_seconds=app.suppression_window_seconds)

    event_log: SyncEventLog | None = None
    if app.event_log_enabled:
        event_log = SyncEventLog(store)
        await event_log.start()

    engine = SyncEngine(
        root=state_dir,
        syncers={
            ChangeKind.SESSION_LOG: SessionLogSyncer(sessions),
            ChangeKind.SESSION_INDEX: SessionIndexSyncer(sessions),
            ChangeKind.CONFIG: ConfigSyncer(configs),
        },
        registry=registry,
        event_log=event_log,
    )
    watcher = PathWatcher(
        state_dir,
        stability_threshold=app.stability_threshold_ms / 1000,
        poll_interval=app.poll_interval_ms / 1000,
        retry_interval=app.watch_retry_seconds,
        initial_scan=app.initial_scan,
    )

    return SyncRuntime(
        state_dir=state_dir,
        store=store,
        registry=registry,
        watcher=watcher,
        engine=engine,
        event_log=event_log,
        platform_writer=PlatformConfigWriter(state_dir, registry, configs),
        log_descriptions=log_descriptions,
    )


async def start_runtime(runtime: SyncRuntime) -> None:
    await runtime.watcher.start()
    runtime.engine_task = asyncio.create_task(runtime.engine.run(runtime.watcher))


async def shutdown_runtime(runtime: SyncRuntime) -> None:
    """Stop watching, let in-flight syncs drain, then release the store."""
    logger.info("Shutting down...")
    await runtime.watcher.close()
    if runtime.engine_task is not None:
        with contextlib.suppress(asyncio.CancelledError):
            await runtime.engine_task
        runtime.engine_task = None
    await runtime.engine.drain()
    if runtime.event_log is not None:
        await runtime.event_log.close()
    runtime.store.close()
