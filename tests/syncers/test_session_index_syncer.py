import json

from openclaw_sync.syncers import MalformedDocumentError, SessionIndexSyncer
from tests.store.base import SyncStoreTestCase


class SessionIndexSyncerTests(SyncStoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._syncer = SessionIndexSyncer(self._sessions)

    def _write_index(self, tenant: str, document) -> object:
        text = document if isinstance(document, str) else json.dumps(document)
        return self.write_state_file(f"agents/{tenant}/sessions/sessions.json", text)

    def test_creates_session_from_index_entry(self) -> None:
        path = self._write_index("T", {"s1": {"channel": "telegram", "updatedAt": "2024-01-01T00:00:00Z"}})

        result = self._syncer.sync("T", path)

        self.assertEqual(1, result.processed)
        session = self._sessions.get_session("T", "s1")
        self.assertIsNotNone(session)
        self.assertEqual("T", session.tenant_id)
        self.assertEqual("s1", session.session_id)
        self.assertEqual("telegram", session.channel)
        self.assertEqual("2024-01-01T00:00:00.000+00:00", session.last_message_at)
        self.assertEqual(0, session.message_count)
        self.assertEqual(
            {"channel": "telegram", "updatedAt": "2024-01-01T00:00:00Z"},
            json.loads(session.metadata_json),
        )

    def test_started_at_is_set_once(self) -> None:
        path = self._write_index("T", {"s1": {"startedAt": "2024-01-01T00:00:00Z"}})
        self._syncer.sync("T", path)

        path = self._write_index("T", {"s1": {"startedAt": "2025-01-01T00:00:00Z", "label": "x"}})
        self._syncer.sync("T", path)

        session = self._sessions.get_session("T", "s1")
        self.assertEqual("2024-01-01T00:00:00.000+00:00", session.started_at)
        self.assertEqual({"startedAt": "2025-01-01T00:00:00Z", "label": "x"}, json.loads(session.metadata_json))

    def test_invalid_json_aborts_the_event(self) -> None:
        path = self._write_index("T", '{"s1": {"channel": "telegram"')

        with self.assertRaises(MalformedDocumentError):
            self._syncer.sync("T", path)

        self.assertEqual([], self._sessions.list_sessions("T"))

    def test_non_object_entry_aborts_without_applying_any_entry(self) -> None:
        path = self._write_index("T", {"good": {"channel": "slack"}, "bad": ["not", "an", "object"]})

        with self.assertRaises(MalformedDocumentError):
            self._syncer.sync("T", path)

        self.assertIsNone(self._sessions.get_session("T", "good"))

    def test_top_level_array_is_malformed(self) -> None:
        path = self._write_index("T", "[]")

        with self.assertRaises(MalformedDocumentError):
            self._syncer.sync("T", path)

    def test_unparseable_timestamps_are_treated_as_absent(self) -> None:
        path = self._write_index("T", {"s1": {"startedAt": "yesterday", "updatedAt": None}})

        self._syncer.sync("T", path)

        session = self._sessions.get_session("T", "s1")
        self.assertIsNone(session.started_at)
        self.assertIsNone(session.last_message_at)

    def test_rows_are_scoped_to_the_tenant(self) -> None:
        self._syncer.sync("A", self._write_index("A", {"s1": {"channel": "telegram"}}))
        self._syncer.sync("B", self._write_index("B", {"s1": {"channel": "discord"}}))

        self.assertEqual("telegram", self._sessions.get_session("A", "s1").channel)
        self.assertEqual("discord", self._sessions.get_session("B", "s1").channel)
