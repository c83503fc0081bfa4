from openclaw_sync.store.configs import ConfigRepository
from openclaw_sync.store.event_log import SyncEventLog
from openclaw_sync.store.models import ConfigRecord, MessageRecord, SessionRecord
from openclaw_sync.store.sessions import SessionRepository
from openclaw_sync.store.store import SyncStore

__all__ = [
    "ConfigRecord",
    "ConfigRepository",
    "MessageRecord",
    "SessionRecord",
    "SessionRepository",
    "SyncEventLog",
    "SyncStore",
]
