import asyncio
import signal

from dotenv import load_dotenv
from loguru import logger

from openclaw_sync.app_config import load_json_config, parse_app_config, resolve_runtime_env
from openclaw_sync.bootstrap import bootstrap_runtime, shutdown_runtime, start_runtime


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    runtime = await bootstrap_runtime(app, resolve_runtime_env())

    print("openclaw-sync (Ctrl+C to stop)")
    print(f"State directory: {runtime.state_dir}")
    print("Watching patterns:")
    for pattern in runtime.watcher.patterns:
        print(f"  - {pattern}")
    print(f"Store: {runtime.store.path}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    stop = asyncio.Event()
    _install_signal_handlers(stop)

    try:
        await start_runtime(runtime)
        logger.info("Sync service started")
        await stop.wait()
    finally:
        await shutdown_runtime(runtime)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
