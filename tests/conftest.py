from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest

from src.attendance_sync.attendance_sync.connectivity.monitor import ConnectivityMonitor
from src.attendance_sync.attendance_sync.connectivity.probes import StaticProbe
from src.attendance_sync.attendance_sync.remote.api import AttendanceApi
from src.attendance_sync.attendance_sync.remote.client import RemoteClient
from src.attendance_sync.attendance_sync.storage.connection import DatabaseConnection, SQLiteConfig
from src.attendance_sync.attendance_sync.storage.memory import MemoryStorage
from src.attendance_sync.attendance_sync.storage.sqlite_storage import SQLiteStorage

API_URL = "http://api.test"


class FakeServer:
    """In-memory stand-in for the attendance API, served through httpx.MockTransport."""

    TYPES = ("escolas", "turmas", "alunos", "presencas")

    def __init__(self):
        self.data: dict[str, dict[int, dict]] = {t: {} for t in self.TYPES}
        self.requests: list[tuple[str, str, Any]] = []
        self.fail: dict[tuple[str, str], int] = {}
        self.gate: Optional[asyncio.Event] = None
        self.next_id = 1000
        # Assign fresh ids to rows it has not seen, instead of keeping the client's.
        self.renumber = False
        # Answer bulk pushes with the stored rows.
        self.echo = True

    def seed(self, entity: str, *rows: dict) -> None:
        for row in rows:
            self.data[entity][int(row["id"])] = dict(row)

    def paths(self, method: Optional[str] = None) -> list[str]:
        return [p for m, p, _ in self.requests if method is None or m == method]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if self.gate is not None:
            await self.gate.wait()

        status = self.fail.get((request.method, path))
        if status:
            return httpx.Response(status, json={"message": f"server rejected {path}"})

        parts = path.strip("/").split("/")[1:]

        if request.method == "GET":
            return httpx.Response(200, json=self._get(parts, request.url.params.get("date")))

        if request.method == "POST" and parts == ["presencas"]:
            row = dict(body)
            if row.get("id") is None:
                row["id"] = self._new_id()
            self.data["presencas"][int(row["id"])] = row
            return httpx.Response(201, json=row)

        if request.method == "POST" and len(parts) == 2 and parts[1] == "sync":
            entity = parts[0]
            saved = []
            for row in body[entity]:
                known = row.get("id") is not None and int(row["id"]) in self.data[entity]
                if row.get("id") is None or (self.renumber and not known):
                    row = {**row, "id": self._new_id()}
                self.data[entity][int(row["id"])] = dict(row)
                saved.append(row)
            if not self.echo:
                return httpx.Response(200, json={"message": "ok"})
            return httpx.Response(200, json={entity: saved})

        return httpx.Response(404, json={"message": "not found"})

    def _new_id(self) -> int:
        self.next_id += 1
        return self.next_id

    def _get(self, parts: list[str], date: Optional[str]) -> list:
        if len(parts) == 1:
            return list(self.data[parts[0]].values())

        parent, ident, child = parts[0], int(parts[1]), parts[2]
        fk = {"escolas": "EscolaId", "turmas": "TurmaId", "alunos": "AlunoId"}[parent]
        rows = [r for r in self.data[child].values() if r.get(fk) == ident]
        if date:
            rows = [r for r in rows if r.get("date") == date]
        return rows


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def api(server: FakeServer) -> AttendanceApi:
    return AttendanceApi(RemoteClient(API_URL, timeout=2.0, transport=server.transport))


def make_monitor(online: bool) -> ConnectivityMonitor:
    monitor = ConnectivityMonitor(StaticProbe(online), interval=0.01)
    asyncio.run(monitor.refresh())
    return monitor


@pytest.fixture
def online() -> ConnectivityMonitor:
    return make_monitor(True)


@pytest.fixture
def offline() -> ConnectivityMonitor:
    return make_monitor(False)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def sqlite_storage(tmp_path) -> SQLiteStorage:
    return SQLiteStorage(DatabaseConnection(SQLiteConfig(path=str(tmp_path / "escola.db"))))


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return SQLiteStorage(DatabaseConnection(SQLiteConfig(path=str(tmp_path / "escola.db"))))
