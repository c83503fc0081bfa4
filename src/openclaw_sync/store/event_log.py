from __future__ import annotations

import asyncio
import json
from typing import Literal
from uuid import uuid4

from loguru import logger

from openclaw_sync.store.store import SyncStore
from openclaw_sync.timestamps import utc_now

SyncOutcome = Literal["synced", "suppressed", "dropped", "failed"]


class SyncEventLog:
    """Batched, append-only record of what happened to each watcher event."""

    def __init__(self, store: SyncStore, *, batch_size: int = 50, flush_interval_seconds: float = 0.5):
        self._store = store
        self._batch_size = max(1, batch_size)
        self._flush_interval_seconds = max(0.05, flush_interval_seconds)
        self._queue: asyncio.Queue[tuple[str | None, str, str, str, dict, str]] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._closed = False

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def emit(
        self,
        tenant_id: str | None,
        kind: str,
        path: str,
        outcome: SyncOutcome,
        detail: dict | None = None,
    ) -> None:
        if self._closed:
            return
        self._queue.put_nowait((tenant_id, kind, path, outcome, detail or {}, utc_now()))

    async def close(self) -> None:
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._flush_all()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval_seconds)
            try:
                await self._flush_once()
            except Exception as ex:
                logger.warning(f"Sync event log flush failed: {ex}")

    async def _flush_all(self) -> None:
        while not self._queue.empty():
            await self._flush_once()

    async def _flush_once(self) -> None:
        items: list[tuple[str | None, str, str, str, dict, str]] = []
        while len(items) < self._batch_size and not self._queue.empty():
            items.append(self._queue.get_nowait())

        if not items:
            return

        params = [
            (str(uuid4()), tenant_id, kind, path, outcome, json.dumps(detail, ensure_ascii=True), created_at)
            for tenant_id, kind, path, outcome, detail, created_at in items
        ]
        await asyncio.to_thread(self._insert, params)

    def _insert(self, params: list[tuple]) -> None:
        with self._store.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO sync_events (id, tenant_id, kind, path, outcome, detail_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                params,
            )
