from __future__ import annotations

import hashlib
import threading
import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _path_key(path: str | Path) -> str:
    return str(Path(path).expanduser().resolve())


class PlatformWriteRegistry:
    """Content hashes of files the platform wrote itself.

    A watcher event for a registered path whose bytes hash to the digest
    registered for that path is the echo of a platform write and must not be
    re-ingested. Each registration suppresses at most one event and expires
    after ``window_seconds`` if never observed. Identical bytes at another
    path are never suppressed, so a miss costs a redundant sync at worst.
    """

    def __init__(self, *, window_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self._window_seconds = window_seconds
        self._clock = clock
        self._expiries: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._prune_locked(self._clock())
            return len(self._expiries)

    def register(self, digest: str, *, path: str | Path) -> None:
        key = (_path_key(path), digest)
        with self._lock:
            now = self._clock()
            self._prune_locked(now)
            self._expiries[key] = now + self._window_seconds
        logger.debug(f"Registered platform write {digest[:12]} for {key[0]}")

    def register_content(self, data: bytes, *, path: str | Path) -> str:
        digest = content_digest(data)
        self.register(digest, path=path)
        return digest

    def consume(self, digest: str, *, path: str | Path) -> bool:
        """Remove the registration for ``path`` and return True if it matched ``digest`` and was still live."""
        key = (_path_key(path), digest)
        with self._lock:
            now = self._clock()
            self._prune_locked(now)
            if key not in self._expiries:
                return False
            del self._expiries[key]
        return True

    def prune(self) -> int:
        with self._lock:
            return self._prune_locked(self._clock())

    def _prune_locked(self, now: float) -> int:
        expired = [key for key, expires_at in self._expiries.items() if expires_at <= now]
        for key in expired:
            del self._expiries[key]
        return len(expired)
