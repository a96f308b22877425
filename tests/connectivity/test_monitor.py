from __future__ import annotations

import asyncio
import logging

import httpx

from src.attendance_sync.attendance_sync.connectivity.monitor import ConnectivityMonitor
from src.attendance_sync.attendance_sync.connectivity.probes import HttpProbe, StaticProbe
from src.attendance_sync.attendance_sync.core.enums import ConnectivityEvent


def test_first_reading_sets_state_without_event():
    events = []
    monitor = ConnectivityMonitor(StaticProbe(True))
    monitor.subscribe(events.append)

    assert asyncio.run(monitor.refresh()) is True
    assert events == []


def test_only_transitions_are_emitted():
    events = []
    probe = StaticProbe(False)
    monitor = ConnectivityMonitor(probe)
    monitor.subscribe(events.append)

    async def scenario():
        await monitor.refresh()
        await monitor.refresh()
        probe.online = True
        await monitor.refresh()
        await monitor.refresh()
        probe.online = False
        await monitor.refresh()

    asyncio.run(scenario())

    assert events == [ConnectivityEvent.BECAME_ONLINE, ConnectivityEvent.BECAME_OFFLINE]


def test_async_listeners_are_awaited_and_failures_logged(caplog):
    seen = []

    async def good(event):
        await asyncio.sleep(0)
        seen.append(event)

    def broken(event):
        raise RuntimeError("listener bug")

    monitor = ConnectivityMonitor(StaticProbe(False))
    monitor.subscribe(broken)
    monitor.subscribe(good)

    async def scenario():
        await monitor.refresh()
        await monitor.set_online(True)

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert seen == [ConnectivityEvent.BECAME_ONLINE]
    assert "Connectivity listener failed" in caplog.text


def test_unsubscribe_stops_delivery():
    events = []
    monitor = ConnectivityMonitor(StaticProbe(False))
    unsubscribe = monitor.subscribe(events.append)

    async def scenario():
        await monitor.refresh()
        unsubscribe()
        await monitor.set_online(True)

    asyncio.run(scenario())
    assert events == []


def test_force_offline_pins_state():
    probe = StaticProbe(True)
    monitor = ConnectivityMonitor(probe, force_offline=True)

    assert asyncio.run(monitor.refresh()) is False
    assert monitor.is_online is False
    assert probe.calls == 0


def test_polling_task_picks_up_changes():
    events = []
    probe = StaticProbe(False)
    monitor = ConnectivityMonitor(probe, interval=0.01)
    monitor.subscribe(events.append)

    async def scenario():
        await monitor.start()
        await monitor.start()
        assert monitor.running
        probe.online = True
        for _ in range(100):
            if events:
                break
            await asyncio.sleep(0.01)
        await monitor.stop()

    asyncio.run(scenario())

    assert events == [ConnectivityEvent.BECAME_ONLINE]
    assert not monitor.running


def test_http_probe_counts_any_answer_as_online():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.host))
        return httpx.Response(404)

    probe = HttpProbe("http://api.test", transport=httpx.MockTransport(handler))

    assert asyncio.run(probe.check()) is True
    assert seen == [("GET", "api.test")]


def test_http_probe_reports_transport_errors_as_offline():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    probe = HttpProbe("http://api.test", timeout=0.5, transport=httpx.MockTransport(handler))

    assert asyncio.run(probe.check()) is False


def test_http_probe_timeout_is_offline():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    monitor = ConnectivityMonitor(HttpProbe("http://api.test", transport=httpx.MockTransport(handler)))

    assert asyncio.run(monitor.refresh()) is False
