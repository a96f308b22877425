from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from typing import Any, Callable, Optional

from ..core.constants import DEFAULT_PROBE_INTERVAL
from ..core.enums import ConnectivityEvent
from .probes import ConnectivityProbe

logger = logging.getLogger(__name__)

Listener = Callable[[ConnectivityEvent], Any]


class ConnectivityMonitor:
    """Current online/offline state plus an edge-triggered transition stream.

    The monitor owns exactly one platform subscription (the polling task
    started by `start()`); listeners only hear about transitions, never a
    heartbeat. Platform push sources can feed state through `set_online()`.
    """

    def __init__(
        self,
        probe: ConnectivityProbe,
        *,
        interval: float = DEFAULT_PROBE_INTERVAL,
        force_offline: bool = False,
    ):
        self._probe = probe
        self._interval = float(interval)
        self._force_offline = bool(force_offline)
        self._online: Optional[bool] = None
        self._listeners: list[Listener] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return bool(self._online) and not self._force_offline

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        if self.running:
            return
        await self.refresh()
        self._task = asyncio.create_task(self._poll(), name="connectivity-monitor")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def refresh(self) -> bool:
        if self._force_offline:
            await self.set_online(False)
        else:
            await self.set_online(await self._probe.check())
        return self.is_online

    async def set_online(self, online: bool) -> None:
        online = bool(online) and not self._force_offline
        previous, self._online = self._online, online

        # The first reading establishes the state; only later changes are transitions.
        if previous is None or previous == online:
            return

        event = ConnectivityEvent.BECAME_ONLINE if online else ConnectivityEvent.BECAME_OFFLINE
        logger.info("Connectivity changed: %s", event.value)
        await self._emit(event)

    async def _emit(self, event: ConnectivityEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Connectivity listener failed on %s", event.value)

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh()
            except Exception:
                logger.exception("Connectivity probe failed")
