from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol


class MalformedDocumentError(ValueError):
    """A whole-file document could not be trusted and was not applied."""


@dataclass
class SyncResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0

    def describe(self) -> str:
        return f"processed={self.processed}, skipped={self.skipped}, failed={self.failed}"


class Syncer(Protocol):
    def sync(self, tenant_id: str, path: Path, content: bytes | None = None) -> SyncResult: ...


def read_bytes(path: Path, content: bytes | None) -> bytes:
    return content if content is not None else Path(path).read_bytes()


def load_document(path: Path, content: bytes | None) -> dict[str, Any]:
    """Decode a whole-file JSON object, raising MalformedDocumentError otherwise."""
    data = read_bytes(path, content)
    try:
        document = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        raise MalformedDocumentError(f"{path.name} is not valid JSON: {ex}") from ex
    if not isinstance(document, dict):
        raise MalformedDocumentError(f"{path.name} must contain a JSON object, got {type(document).__name__}")
    return document
