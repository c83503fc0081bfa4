import json

from openclaw_sync.syncers import ConfigSyncer, MalformedDocumentError
from tests.store.base import SyncStoreTestCase


class ConfigSyncerTests(SyncStoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._syncer = ConfigSyncer(self._configs)

    def _write_config(self, tenant: str, document) -> object:
        text = document if isinstance(document, str) else json.dumps(document)
        return self.write_state_file(f"agents/{tenant}/openclaw.json", text)

    def test_channel_section_becomes_config_record(self) -> None:
        path = self._write_config("T", {"channels": {"telegram": {"enabled": True, "botToken": "abc"}}})

        result = self._syncer.sync("T", path)

        self.assertEqual(1, result.processed)
        record = self._configs.get_config("T", "channel", "telegram")
        self.assertIsNotNone(record)
        self.assertEqual({"enabled": True, "botToken": "abc"}, json.loads(record.config_value_json))
        self.assertTrue(record.enabled)
        self.assertIsNotNone(record.synced_at)
        self.assertEqual(record.synced_at, record.updated_at)

    def test_all_sections_are_flattened(self) -> None:
        path = self._write_config(
            "T",
            {
                "channels": {"discord": {"enabled": False}},
                "models": {"fast": {"provider": "anthropic", "model": "haiku"}},
                "tools": {"browser": {"enabled": True}},
                "agents": {"default": {"systemPrompt": "Be brief."}, "other": {}},
                "auth": {"anthropic": {"apiKey": "secret"}},
            },
        )

        result = self._syncer.sync("T", path)

        self.assertEqual(4, result.processed)
        keys = [(r.config_type, r.config_key) for r in self._configs.list_configs("T")]
        self.assertEqual(
            [("agent", "default"), ("channel", "discord"), ("model", "fast"), ("tool", "browser")],
            keys,
        )
        self.assertFalse(self._configs.get_config("T", "channel", "discord").enabled)
        self.assertEqual(
            {"systemPrompt": "Be brief."},
            json.loads(self._configs.get_config("T", "agent", "default").config_value_json),
        )

    def test_absent_and_non_object_sections_are_skipped(self) -> None:
        path = self._write_config("T", {"channels": "nope", "models": None})

        result = self._syncer.sync("T", path)

        self.assertEqual(0, result.processed)
        self.assertEqual([], self._configs.list_configs("T"))

    def test_null_default_agent_is_skipped(self) -> None:
        path = self._write_config("T", {"agents": {"default": None}, "tools": {"browser": {}}})

        result = self._syncer.sync("T", path)

        self.assertEqual(1, result.processed)
        self.assertIsNone(self._configs.get_config("T", "agent", "default"))

    def test_resync_updates_the_same_row(self) -> None:
        self._syncer.sync("T", self._write_config("T", {"tools": {"browser": {"enabled": True}}}))
        self._syncer.sync("T", self._write_config("T", {"tools": {"browser": {"enabled": False}}}))

        records = self._configs.list_configs("T")
        self.assertEqual(1, len(records))
        self.assertFalse(records[0].enabled)

    def test_malformed_config_raises(self) -> None:
        path = self._write_config("T", "{not json")

        with self.assertRaises(MalformedDocumentError):
            self._syncer.sync("T", path)

    def test_platform_write_keeps_synced_at(self) -> None:
        self._syncer.sync("T", self._write_config("T", {"channels": {"slack": {"enabled": True}}}))
        synced_at = self._configs.get_config("T", "channel", "slack").synced_at

        self._configs.upsert_config("T", "channel", "slack", {"enabled": False}, enabled=False, origin="platform")

        record = self._configs.get_config("T", "channel", "slack")
        self.assertEqual(synced_at, record.synced_at)
        self.assertFalse(record.enabled)
        self.assertGreaterEqual(record.updated_at, synced_at)
