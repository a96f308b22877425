"""Long-running agent: watch connectivity and sync on every reconnection."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.logging_config import PACKAGE_LOGGER, configure_logging
from src.attendance_sync.attendance_sync.main import load_settings

logger = logging.getLogger(f"{PACKAGE_LOGGER}.agent")


async def run() -> None:
    _, settings = load_settings()
    configure_logging(settings.get("LOG_LEVEL", "INFO"), settings.get("LOG_FILE"))
    container = build_container(settings=settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    await container.monitor.start()
    logger.info("Agent started (online=%s, pending=%d)", container.monitor.is_online, container.recorder.pending_count())
    if container.monitor.is_online:
        result = await container.session.sync()
        logger.info("Startup sync: %s", result.message)

    try:
        await stop.wait()
    finally:
        await container.monitor.stop()
        container.unsubscribe()
        logger.info("Agent stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
