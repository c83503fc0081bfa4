"""Filesystem watcher producing debounced per-path change events.

watchdog delivers raw events on its observer thread; they are handed to the
event loop, held until the file's size and mtime stop changing for the
stability window, and then emitted once on a single async stream.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from stat import S_ISDIR
from typing import Any, Literal

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, wait_fixed
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

ChangeType = Literal["created", "modified"]

DEFAULT_PATTERNS: tuple[str, ...] = (
    "agents/*/sessions/*.jsonl",
    "agents/*/sessions/sessions.json",
    "agents/*/openclaw.json",
)


@dataclass(frozen=True)
class WatchEvent:
    path: Path
    change: ChangeType


@dataclass
class _PendingChange:
    change: ChangeType
    signature: tuple[int, int] | None
    stable_since: float


def _decode_path(raw: bytes | str) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


class _ChangeHandler(FileSystemEventHandler):
    """Forwards file creations and modifications; deletions are ignored."""

    def __init__(self, notify: Callable[[str, ChangeType], None]):
        super().__init__()
        self._notify = notify

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._notify(_decode_path(event.src_path), "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._notify(_decode_path(event.src_path), "modified")

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic replace (write temp file, rename over target) lands here.
        if not event.is_directory:
            self._notify(_decode_path(event.dest_path), "created")


class PathWatcher:
    def __init__(
        self,
        root: str | Path,
        patterns: Iterable[str] = DEFAULT_PATTERNS,
        *,
        stability_threshold: float = 0.3,
        poll_interval: float = 0.1,
        retry_interval: float = 5.0,
        initial_scan: bool = True,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self._root = Path(root).expanduser().absolute()
        self._patterns = tuple(patterns)
        self._stability_threshold = stability_threshold
        self._poll_interval = max(0.01, poll_interval)
        self._retry_interval = retry_interval
        self._initial_scan = initial_scan
        self._observer_factory = observer_factory
        self._pending: dict[Path, _PendingChange] = {}
        self._queue: asyncio.Queue[WatchEvent | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Any = None
        self._root_identity: tuple[int, int] | None = None
        self._task: asyncio.Task | None = None
        self._closed = False

    @property
    def root(self) -> Path:
        return self._root

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def matches(self, path: str | Path) -> bool:
        try:
            relative = PurePosixPath(Path(path).relative_to(self._root).as_posix())
        except ValueError:
            return False
        for pattern in self._patterns:
            pattern_path = PurePosixPath(pattern)
            # PurePath.match anchors on the right only; require the same depth.
            if len(pattern_path.parts) == len(relative.parts) and relative.match(pattern):
                return True
        return False

    async def start(self) -> None:
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._supervise())

    async def events(self) -> AsyncIterator[WatchEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._stop_observer()
        self._pending.clear()
        self._queue.put_nowait(None)
        logger.info("Path watcher closed")

    def notify(self, raw_path: str, change: ChangeType) -> None:
        """Thread-safe entry point for raw filesystem notifications."""
        loop = self._loop
        if loop is None or self._closed:
            return
        try:
            loop.call_soon_threadsafe(self._note_change, raw_path, change)
        except RuntimeError:
            # Loop already closed during shutdown.
            pass

    async def _supervise(self) -> None:
        restarted = False
        while not self._closed:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(OSError),
                wait=wait_fixed(self._retry_interval),
                before_sleep=self._on_retry,
                reraise=True,
            ):
                with attempt:
                    self._observer = self._start_observer()
            logger.info(f"Watching {self._root} for {', '.join(self._patterns)}")

            # Changes made while the watch was down are only visible to a scan.
            if self._initial_scan or restarted:
                self._scan_existing()
            restarted = True

            while not self._closed:
                await asyncio.sleep(self._poll_interval)
                self._poll_pending()
                if not self._observer.is_alive():
                    logger.warning(f"Observer for {self._root} stopped unexpectedly, restarting")
                    await self._stop_observer()
                    break
                if self._root_replaced():
                    logger.warning(f"State directory {self._root} was removed or replaced, re-establishing watch")
                    await self._stop_observer()
                    break

    def _start_observer(self) -> Any:
        if not self._root.exists():
            raise FileNotFoundError(f"State directory does not exist: {self._root}")
        if not self._root.is_dir():
            raise NotADirectoryError(f"State path is not a directory: {self._root}")
        stat = self._root.stat()
        self._root_identity = (stat.st_dev, stat.st_ino)
        observer = self._observer_factory()
        observer.schedule(_ChangeHandler(self.notify), str(self._root), recursive=True)
        observer.start()
        return observer

    def _root_replaced(self) -> bool:
        try:
            stat = self._root.stat()
        except OSError:
            return True
        return not S_ISDIR(stat.st_mode) or (stat.st_dev, stat.st_ino) != self._root_identity

    async def _stop_observer(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            await asyncio.to_thread(observer.join, 5.0)
        except Exception as ex:
            logger.warning(f"Error while stopping observer: {ex}")

    def _on_retry(self, retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Cannot watch {self._root} ({exc}). Retrying in {self._retry_interval:.0f}s "
            f"(attempt {retry_state.attempt_number})..."
        )

    def _scan_existing(self) -> None:
        count = 0
        for pattern in self._patterns:
            for path in self._root.glob(pattern):
                if path.is_file():
                    self._note_change(str(path), "created")
                    count += 1
        if count:
            logger.info(f"Initial scan queued {count} file(s)")

    def _note_change(self, raw_path: str, change: ChangeType) -> None:
        if self._closed:
            return
        path = Path(raw_path)
        if not self.matches(path):
            return
        previous = self._pending.get(path)
        if previous is not None and previous.change == "created":
            change = "created"
        self._pending[path] = _PendingChange(
            change=change,
            signature=None,
            stable_since=asyncio.get_running_loop().time(),
        )

    def _poll_pending(self) -> None:
        if not self._pending:
            return
        now = asyncio.get_running_loop().time()
        for path, pending in list(self._pending.items()):
            try:
                stat = path.stat()
            except OSError:
                logger.debug(f"Pending file vanished before settling: {path}")
                del self._pending[path]
                continue

            signature = (stat.st_size, stat.st_mtime_ns)
            if signature != pending.signature:
                pending.signature = signature
                pending.stable_since = now
                continue

            if now - pending.stable_since >= self._stability_threshold:
                del self._pending[path]
                logger.debug(f"File settled: {path} ({pending.change})")
                self._queue.put_nowait(WatchEvent(path=path, change=pending.change))
