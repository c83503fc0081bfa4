import threading
import unittest

from openclaw_sync.suppression import PlatformWriteRegistry, content_digest

_PATH = "/state/agents/t1/openclaw.json"


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class PlatformWriteRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._clock = _Clock()
        self._registry = PlatformWriteRegistry(window_seconds=5.0, clock=self._clock)

    def test_registered_content_suppresses_exactly_one_event(self) -> None:
        written = b'{"channels": {}}\n'
        self._registry.register_content(written, path=_PATH)

        self.assertTrue(self._registry.consume(content_digest(written), path=_PATH))
        self.assertFalse(self._registry.consume(content_digest(written), path=_PATH))

    def test_different_content_is_not_suppressed(self) -> None:
        self._registry.register_content(b"platform", path=_PATH)

        self.assertFalse(self._registry.consume(content_digest(b"external"), path=_PATH))
        self.assertEqual(1, len(self._registry))

    def test_identical_bytes_at_another_path_are_not_suppressed(self) -> None:
        written = b'{"channels": {}}\n'
        self._registry.register_content(written, path=_PATH)

        self.assertFalse(self._registry.consume(content_digest(written), path="/state/agents/t2/openclaw.json"))
        self.assertTrue(self._registry.consume(content_digest(written), path=_PATH))

    def test_unmatched_hash_expires(self) -> None:
        digest = self._registry.register_content(b"platform", path=_PATH)

        self._clock.now += 5.0

        self.assertFalse(self._registry.consume(digest, path=_PATH))
        self.assertEqual(0, len(self._registry))

    def test_hash_is_live_just_before_expiry(self) -> None:
        digest = self._registry.register_content(b"platform", path=_PATH)

        self._clock.now += 4.9

        self.assertTrue(self._registry.consume(digest, path=_PATH))

    def test_reregistering_refreshes_expiry(self) -> None:
        digest = self._registry.register_content(b"platform", path=_PATH)
        self._clock.now += 4.0
        self._registry.register(digest, path=_PATH)
        self._clock.now += 4.0

        self.assertTrue(self._registry.consume(digest, path=_PATH))

    def test_prune_reports_expired_entries(self) -> None:
        self._registry.register_content(b"a", path=_PATH)
        self._registry.register_content(b"b", path=_PATH)
        self._clock.now += 10

        self.assertEqual(2, self._registry.prune())

    def test_concurrent_consumers_match_once(self) -> None:
        digest = self._registry.register_content(b"shared", path=_PATH)
        hits: list[bool] = []

        def consume() -> None:
            hits.append(self._registry.consume(digest, path=_PATH))

        threads = [threading.Thread(target=consume) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(1, hits.count(True))

    def test_digest_is_sha256_hex(self) -> None:
        self.assertEqual(
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
            content_digest(b""),
        )


if __name__ == "__main__":
    unittest.main()
