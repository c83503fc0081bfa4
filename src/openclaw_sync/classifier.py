from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath

AGENTS_SEGMENT = "agents"
SESSION_INDEX_NAME = "sessions.json"
CONFIG_NAME = "openclaw.json"
SESSION_LOG_SUFFIX = ".jsonl"


class ChangeKind(str, Enum):
    """Record kind a changed file projects into."""

    SESSION_LOG = "sessionLog"
    SESSION_INDEX = "sessionIndex"
    CONFIG = "config"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ClassifiedChange:
    path: Path
    tenant_id: str | None
    kind: ChangeKind

    @property
    def key(self) -> tuple[str | None, ChangeKind]:
        return self.tenant_id, self.kind


def extract_tenant_id(path: str | PurePath, root: str | PurePath | None = None) -> str | None:
    """Return the segment after ``agents`` or None when the path doesn't follow the layout.

    With ``root`` the path must live under it and ``agents`` must be its first
    relative segment. Without it the first ``agents`` segment anywhere in the
    path is used.
    """
    parts = PurePath(path).parts
    if root is not None:
        try:
            parts = PurePath(path).relative_to(root).parts
        except ValueError:
            return None
        if not parts or parts[0] != AGENTS_SEGMENT:
            return None
        index = 0
    else:
        try:
            index = parts.index(AGENTS_SEGMENT)
        except ValueError:
            return None

    # Need the tenant segment plus at least one segment beneath it.
    if len(parts) < index + 3:
        return None
    tenant_id = parts[index + 1]
    if tenant_id in {"", ".", ".."}:
        return None
    return tenant_id


def classify_kind(path: str | PurePath) -> ChangeKind:
    name = PurePath(path).name
    if name == SESSION_INDEX_NAME:
        return ChangeKind.SESSION_INDEX
    if name.endswith(SESSION_LOG_SUFFIX) and len(name) > len(SESSION_LOG_SUFFIX):
        return ChangeKind.SESSION_LOG
    if name == CONFIG_NAME:
        return ChangeKind.CONFIG
    return ChangeKind.UNRECOGNIZED


def classify_path(path: str | PurePath, root: str | PurePath | None = None) -> ClassifiedChange:
    tenant_id = extract_tenant_id(path, root)
    kind = classify_kind(path) if tenant_id is not None else ChangeKind.UNRECOGNIZED
    return ClassifiedChange(path=Path(path), tenant_id=tenant_id, kind=kind)
