from __future__ import annotations

import asyncio

import pytest

from src.attendance_sync.attendance_sync.classes.model import SchoolClass
from src.attendance_sync.attendance_sync.connectivity.probes import StaticProbe
from src.attendance_sync.attendance_sync.container import build_container
from src.attendance_sync.attendance_sync.core.exceptions import StorageError
from src.attendance_sync.attendance_sync.main import create_app
from src.attendance_sync.attendance_sync.schools.model import School
from src.attendance_sync.attendance_sync.storage.memory import MemoryStorage
from src.attendance_sync.attendance_sync.students.model import Student

SETTINGS = {
    "API_URL": "http://api.test",
    "REQUEST_TIMEOUT": 2.0,
    "AUTO_SYNC_ON_RECONNECT": False,
    "LOG_LEVEL": "WARNING",
    "SECRET_KEY": "test-secret",
}


@pytest.fixture
def local_storage():
    storage = MemoryStorage()
    school = storage.schools.save(School(name="Central", address="Rua A"))
    klass = storage.classes.save(SchoolClass(name="5A", school_id=school))
    storage.students.save(Student(name="Ana", class_id=klass))
    return storage


def _client(storage, server, *, online=False):
    container = build_container(
        settings=SETTINGS,
        storage=storage,
        probe=StaticProbe(online),
        transport=server.transport,
    )
    app = create_app(settings=SETTINGS, container=container)
    app.config["TESTING"] = True
    return app.test_client()


def test_local_listings_offline(local_storage, server):
    client = _client(local_storage, server)

    schools = client.get("/local/schools").get_json()
    classes = client.get("/local/schools/1/classes").get_json()
    students = client.get("/local/classes/1/students").get_json()

    assert [s["name"] for s in schools["escolas"]] == ["Central"]
    assert schools["source"] == "local"
    assert [c["EscolaId"] for c in classes["turmas"]] == [1]
    assert [s["TurmaId"] for s in students["alunos"]] == [1]
    assert server.requests == []


def test_record_attendance_then_list_it(local_storage, server):
    client = _client(local_storage, server)

    resp = client.post("/local/attendance", json={"AlunoId": 1, "present": True, "date": "2024-03-01", "observacao": "ok"})

    assert resp.status_code == 201
    assert resp.get_json()["pending"] == 1
    listed = client.get("/local/students/1/attendance?date=2024-03-01").get_json()
    assert [(p["AlunoId"], p["present"], p["observacao"]) for p in listed["presencas"]] == [(1, True, "ok")]


def test_bad_input_is_a_400(local_storage, server):
    client = _client(local_storage, server)

    assert client.post("/local/attendance", json={"present": True}).status_code == 400
    resp = client.post("/local/attendance", json={"AlunoId": 1, "present": True, "date": "ontem"})
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_storage_failure_is_a_503_with_retry_hint(local_storage, server):
    def broken():
        raise StorageError("database is locked")

    local_storage.schools.get_all = broken
    client = _client(local_storage, server)

    resp = client.get("/local/schools")

    assert resp.status_code == 503
    assert resp.get_json() == {"success": False, "message": "database is locked", "retry": True}


def test_sync_and_status_endpoints(local_storage, server):
    client = _client(local_storage, server, online=True)
    client.post("/local/attendance", json={"AlunoId": 1, "present": False, "date": "2024-03-01"})

    sync = client.post("/local/sync")
    status = client.get("/local/status").get_json()

    assert sync.status_code == 200
    assert sync.get_json()["success"] is True
    assert status["online"] is True
    assert status["storage"] == "memory"
    assert status["pending"] == 0
    assert status["last_sync"] == sync.get_json()["finished_at"]


def test_sync_endpoint_offline(local_storage, server):
    client = _client(local_storage, server)

    body = client.post("/local/sync").get_json()

    assert body["success"] is False
    assert "Offline" in body["message"]
    assert server.requests == []


def test_reconnection_found_by_sync_endpoint_syncs_once(local_storage, server):
    probe = StaticProbe(False)
    container = build_container(
        settings={**SETTINGS, "AUTO_SYNC_ON_RECONNECT": True},
        storage=local_storage,
        probe=probe,
        transport=server.transport,
    )
    asyncio.run(container.monitor.refresh())
    app = create_app(settings=SETTINGS, container=container)
    client = app.test_client()

    probe.online = True
    resp = client.post("/local/sync")

    assert resp.status_code == 200
    assert resp.get_json()["success"] is True
    assert server.paths("POST").count("/api/escolas/sync") == 1
    assert server.paths("GET").count("/api/escolas") == 1
    container.unsubscribe()
