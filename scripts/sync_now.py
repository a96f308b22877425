"""Run one push-then-pull sync against the configured server and exit."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.logging_config import configure_logging
from src.attendance_sync.attendance_sync.main import load_settings


async def run() -> int:
    _, settings = load_settings()
    configure_logging(settings.get("LOG_LEVEL", "INFO"), settings.get("LOG_FILE"))
    container = build_container(settings={**settings, "AUTO_SYNC_ON_RECONNECT": False})

    if not await container.monitor.refresh():
        print(f"Offline: {container.client.base_url} is unreachable")
        return 2

    result = await container.sync_service.sync_all()
    print(result.message)
    print(f"Pending attendance: {container.recorder.pending_count()}")
    return 0 if result.success else 1


def main() -> None:
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
