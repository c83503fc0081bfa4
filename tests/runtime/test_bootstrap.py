import asyncio
import json
import shutil
import time
import unittest
from pathlib import Path
from uuid import uuid4

from openclaw_sync.app_config import RuntimeEnv, parse_app_config
from openclaw_sync.bootstrap import bootstrap_runtime, shutdown_runtime, start_runtime
from openclaw_sync.store import ConfigRepository, SessionRepository

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class BootstrapRuntimeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"bootstrap-{uuid4().hex}"
        self._state_dir = self._tmp_dir / "state"
        (self._state_dir / "agents/t1/sessions").mkdir(parents=True)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_existing_state_is_ingested_and_shutdown_drains(self) -> None:
        (self._state_dir / "agents/t1/sessions/s1.jsonl").write_text(
            json.dumps({"role": "user", "content": "hi", "timestamp": "2024-01-01T00:00:00Z"}) + "\n",
            encoding="utf-8",
        )
        (self._state_dir / "agents/t1/sessions/sessions.json").write_text(
            json.dumps({"s1": {"channel": "telegram"}}),
            encoding="utf-8",
        )
        (self._state_dir / "agents/t1/openclaw.json").write_text(
            json.dumps({"models": {"main": {"provider": "anthropic"}}}),
            encoding="utf-8",
        )
        app = parse_app_config({"StabilityThresholdMs": 50, "PollIntervalMs": 20})
        env = RuntimeEnv(state_dir=str(self._state_dir), db_path=str(self._tmp_dir / "sync.db"))

        async def scenario() -> None:
            runtime = await bootstrap_runtime(app, env, configure_logging=False)
            sessions = SessionRepository(runtime.store)
            configs = ConfigRepository(runtime.store)
            await start_runtime(runtime)
            try:
                deadline = time.monotonic() + 5
                while time.monotonic() < deadline:
                    session = sessions.get_session("t1", "s1")
                    if (
                        session is not None
                        and session.message_count == 1
                        and session.channel == "telegram"
                        and configs.get_config("t1", "model", "main") is not None
                    ):
                        break
                    await asyncio.sleep(0.05)
                session = sessions.get_session("t1", "s1")
                self.assertIsNotNone(session)
                self.assertEqual(1, session.message_count)
                self.assertEqual("telegram", session.channel)
                self.assertIsNotNone(configs.get_config("t1", "model", "main"))
            finally:
                await shutdown_runtime(runtime)
            self.assertFalse(runtime.engine.accepting)

        asyncio.run(scenario())


if __name__ == "__main__":
    unittest.main()
