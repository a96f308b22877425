from __future__ import annotations

import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Mapping, Optional

import httpx

from .attendance.recorder import AttendanceRecorder
from .catalog.service import CatalogService
from .connectivity.monitor import ConnectivityMonitor
from .connectivity.probes import ConnectivityProbe, HttpProbe
from .core.constants import DEFAULT_API_URL, DEFAULT_DB_FILENAME, DEFAULT_PROBE_INTERVAL, DEFAULT_REQUEST_TIMEOUT
from .core.enums import ConnectivityEvent, StorageBackend
from .remote.api import AttendanceApi
from .remote.client import RemoteClient
from .session.service import AttendanceSession
from .storage.base import Storage
from .storage.factory import select_storage
from .sync.service import SyncService

logger = logging.getLogger(__name__)

SETTING_NAMES = (
    "API_URL",
    "LOCAL_DB_PATH",
    "STORAGE_BACKEND",
    "REQUEST_TIMEOUT",
    "CONNECTIVITY_PROBE_INTERVAL",
    "FORCE_OFFLINE",
    "AUTO_SYNC_ON_RECONNECT",
    "AUTO_INIT_DB",
    "LOG_LEVEL",
    "LOG_FILE",
    "DEBUG",
)


@dataclass(frozen=True)
class Container:
    storage: Storage
    client: RemoteClient
    api: AttendanceApi
    monitor: ConnectivityMonitor

    sync_service: SyncService
    recorder: AttendanceRecorder
    catalog: CatalogService
    session: AttendanceSession

    unsubscribe: Callable[[], None]


def settings_from_module(module: ModuleType) -> dict:
    return {name: getattr(module, name) for name in SETTING_NAMES if hasattr(module, name)}


def build_container(
    *,
    settings: Mapping[str, Any],
    storage: Optional[Storage] = None,
    probe: Optional[ConnectivityProbe] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Container:
    api_url = str(settings.get("API_URL") or DEFAULT_API_URL)

    if storage is None:
        storage = select_storage(
            backend=str(settings.get("STORAGE_BACKEND") or StorageBackend.AUTO.value),
            db_path=str(settings.get("LOCAL_DB_PATH") or DEFAULT_DB_FILENAME),
            init_schema=bool(settings.get("AUTO_INIT_DB", True)),
        )

    client = RemoteClient(
        api_url,
        timeout=float(settings.get("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
        transport=transport,
    )
    api = AttendanceApi(client)
    monitor = ConnectivityMonitor(
        probe or HttpProbe(api_url, transport=transport),
        interval=float(settings.get("CONNECTIVITY_PROBE_INTERVAL", DEFAULT_PROBE_INTERVAL)),
        force_offline=bool(settings.get("FORCE_OFFLINE", False)),
    )

    sync_service = SyncService(storage, api, monitor)
    recorder = AttendanceRecorder(storage.attendance, api, monitor)
    catalog = CatalogService(storage, api, monitor)
    session = AttendanceSession(storage, catalog, recorder, sync_service)

    async def on_connectivity(event: ConnectivityEvent) -> None:
        if event != ConnectivityEvent.BECAME_ONLINE:
            return
        logger.info("Back online; starting sync")
        result = await session.sync()
        if not result.success:
            logger.warning("Sync after reconnection: %s", result.message)

    if settings.get("AUTO_SYNC_ON_RECONNECT", True):
        unsubscribe = monitor.subscribe(on_connectivity)
    else:

        def unsubscribe() -> None:
            return None

    return Container(
        storage=storage,
        client=client,
        api=api,
        monitor=monitor,
        sync_service=sync_service,
        recorder=recorder,
        catalog=catalog,
        session=session,
        unsubscribe=unsubscribe,
    )
