from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

from loguru import logger

from openclaw_sync.classifier import ChangeKind, ClassifiedChange, classify_path
from openclaw_sync.store import SyncEventLog
from openclaw_sync.suppression import PlatformWriteRegistry, content_digest
from openclaw_sync.syncers import MalformedDocumentError, Syncer
from openclaw_sync.watcher import PathWatcher, WatchEvent

DISPATCHED_KINDS = (ChangeKind.SESSION_LOG, ChangeKind.SESSION_INDEX, ChangeKind.CONFIG)

WorkerKey = tuple[str, ChangeKind]


class SyncEngine:
    """Classifies watcher events, drops platform echoes and dispatches the rest.

    Events sharing a (tenant, kind) key are handled one at a time in arrival
    order by a dedicated worker; different keys proceed concurrently. Blocking
    reads and store writes run in worker threads.
    """

    def __init__(
        self,
        *,
        root: str | Path | None,
        syncers: dict[ChangeKind, Syncer],
        registry: PlatformWriteRegistry,
        event_log: SyncEventLog | None = None,
    ):
        missing = [kind.value for kind in DISPATCHED_KINDS if kind not in syncers]
        if missing:
            raise ValueError(f"No syncer registered for: {', '.join(missing)}")
        self._root = Path(root).expanduser().absolute() if root is not None else None
        self._syncers = syncers
        self._registry = registry
        self._event_log = event_log
        self._queues: dict[WorkerKey, asyncio.Queue[ClassifiedChange | None]] = {}
        self._workers: dict[WorkerKey, asyncio.Task] = {}
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    async def run(self, watcher: PathWatcher) -> None:
        async for event in watcher.events():
            if not self.submit(event):
                break

    def submit(self, event: WatchEvent) -> bool:
        """Route one event to its worker. Returns False once the engine stopped accepting."""
        if not self._accepting:
            logger.debug(f"Engine is shutting down, ignoring {event.path}")
            return False

        change = classify_path(event.path, self._root)
        if change.tenant_id is None:
            logger.info(f"Could not extract tenant ID from path: {event.path}")
            self._record(change, "dropped", {"reason": "no tenant"})
            return True
        if change.kind == ChangeKind.UNRECOGNIZED:
            logger.debug(f"Ignoring unrecognized file: {event.path}")
            self._record(change, "dropped", {"reason": "unrecognized"})
            return True

        key: WorkerKey = (change.tenant_id, change.kind)
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = asyncio.create_task(self._worker(key, queue))
        logger.debug(f"File changed: {event.path} ({event.change}, {change.kind.value})")
        queue.put_nowait(change)
        return True

    async def wait_idle(self) -> None:
        for queue in list(self._queues.values()):
            await queue.join()

    async def drain(self) -> None:
        """Stop accepting events and let queued and in-flight syncs finish."""
        self._accepting = False
        for queue in self._queues.values():
            queue.put_nowait(None)
        if self._workers:
            await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._workers.clear()
        self._queues.clear()

    async def _worker(self, key: WorkerKey, queue: asyncio.Queue[ClassifiedChange | None]) -> None:
        while True:
            change = await queue.get()
            try:
                if change is None:
                    return
                await self.process(change)
            except Exception as ex:
                logger.exception(f"Unexpected failure while syncing {key[0]}/{key[1].value}")
                self._record(change, "failed", {"reason": "unexpected", "error": str(ex)})
            finally:
                queue.task_done()

    async def process(self, change: ClassifiedChange) -> None:
        try:
            data = await asyncio.to_thread(change.path.read_bytes)
        except OSError as ex:
            logger.warning(f"Cannot read {change.path}: {ex}")
            self._record(change, "dropped", {"reason": "unreadable", "error": str(ex)})
            return

        if self._registry.consume(content_digest(data), path=change.path):
            logger.info(f"Skipping platform-triggered change: {change.path}")
            self._record(change, "suppressed")
            return

        syncer = self._syncers[change.kind]
        try:
            result = await asyncio.to_thread(syncer.sync, change.tenant_id, change.path, data)
        except MalformedDocumentError as ex:
            logger.warning(f"Skipping malformed document {change.path}: {ex}")
            self._record(change, "dropped", {"reason": "malformed", "error": str(ex)})
        except sqlite3.OperationalError as ex:
            logger.warning(f"Store unavailable while syncing {change.path}, dropping event: {ex}")
            self._record(change, "failed", {"reason": "store", "error": str(ex)})
        except OSError as ex:
            logger.warning(f"I/O error while syncing {change.path}: {ex}")
            self._record(change, "failed", {"reason": "io", "error": str(ex)})
        else:
            logger.info(f"Synced {change.kind.value} for {change.tenant_id}: {change.path.name} ({result.describe()})")
            self._record(
                change,
                "synced",
                {"processed": result.processed, "skipped": result.skipped, "failed": result.failed},
            )

    def _record(self, change: ClassifiedChange, outcome, detail: dict | None = None) -> None:
        if self._event_log is not None:
            self._event_log.emit(change.tenant_id, change.kind.value, str(change.path), outcome, detail)
