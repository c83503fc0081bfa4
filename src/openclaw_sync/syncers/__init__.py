from openclaw_sync.syncers.common import MalformedDocumentError, Syncer, SyncResult
from openclaw_sync.syncers.config import ConfigSyncer
from openclaw_sync.syncers.session_index import SessionIndexSyncer
from openclaw_sync.syncers.session_log import SessionLogSyncer

__all__ = [
    "ConfigSyncer",
    "MalformedDocumentError",
    "SessionIndexSyncer",
    "SessionLogSyncer",
    "SyncResult",
    "Syncer",
]
