from __future__ import annotations

import asyncio

import httpx
import pytest

from src.attendance_sync.attendance_sync.attendance.model import AttendanceRecord
from src.attendance_sync.attendance_sync.core.enums import EntityType
from src.attendance_sync.attendance_sync.core.exceptions import NetworkError, RequestCancelled, ValidationError
from src.attendance_sync.attendance_sync.remote.client import CancelToken, RemoteClient
from src.attendance_sync.attendance_sync.remote.serializers import attendance_to_wire, from_wire_list

API_URL = "http://api.test"


def _client(handler) -> RemoteClient:
    return RemoteClient(API_URL, timeout=1.0, transport=httpx.MockTransport(handler))


def test_get_returns_decoded_json():
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "http://api.test/api/escolas"
        return httpx.Response(200, json=[{"id": 1, "name": "Central"}])

    assert asyncio.run(_client(handler).get("/api/escolas")) == [{"id": 1, "name": "Central"}]


def test_empty_body_returns_none():
    client = _client(lambda request: httpx.Response(204))

    assert asyncio.run(client.post("/api/presencas/sync", {"presencas": []})) is None


def test_non_2xx_uses_server_message():
    client = _client(lambda request: httpx.Response(422, json={"message": "Aluno inexistente"}))

    with pytest.raises(NetworkError) as exc:
        asyncio.run(client.post("/api/presencas", {"AlunoId": 99}))

    assert exc.value.message == "Aluno inexistente"
    assert exc.value.status_code == 422


def test_non_2xx_without_message_uses_status_text():
    client = _client(lambda request: httpx.Response(500, text="<html>oops</html>"))

    with pytest.raises(NetworkError) as exc:
        asyncio.run(client.get("/api/alunos"))

    assert exc.value.message == "Request failed: 500 Internal Server Error"


def test_transport_failure_and_timeout_become_network_error():
    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(_client(refused).get("/api/escolas"))
    with pytest.raises(NetworkError) as exc:
        asyncio.run(_client(slow).get("/api/escolas"))
    assert "timed out" in exc.value.message


def test_cancel_token_aborts_in_flight_request():
    async def scenario():
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, json=[])

        token = CancelToken()
        call = asyncio.create_task(_client(handler).get("/api/alunos", cancel_token=token))
        await started.wait()
        token.cancel()
        with pytest.raises(RequestCancelled):
            await call

    asyncio.run(scenario())


def test_already_cancelled_token_sends_nothing():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    async def scenario():
        token = CancelToken()
        token.cancel()
        await _client(handler).get("/api/alunos", cancel_token=token)

    with pytest.raises(RequestCancelled):
        asyncio.run(scenario())
    assert calls == []


def test_from_wire_list_accepts_envelopes_and_missing_payload():
    payload = {"presencas": [{"id": 7, "AlunoId": 3, "date": "2024-03-01T00:00:00.000Z", "present": 1}]}

    records = from_wire_list(EntityType.ATTENDANCE, payload)

    assert records == [AttendanceRecord(id=7, student_id=3, date="2024-03-01", present=True, synced=True)]
    assert from_wire_list(EntityType.SCHOOL, None) == []
    with pytest.raises(ValidationError):
        from_wire_list(EntityType.SCHOOL, "nope")


def test_from_wire_list_rejects_malformed_ids():
    with pytest.raises(ValidationError, match="escolas"):
        from_wire_list(EntityType.SCHOOL, [{"id": "abc", "name": "Central"}])
    with pytest.raises(ValidationError):
        from_wire_list(EntityType.STUDENT, [{"id": 1, "name": "Ana", "TurmaId": "5A"}])

def test_attendance_wire_names():
    wire = attendance_to_wire(AttendanceRecord(id=1, student_id=3, date="2024-03-01", present=False))

    assert wire["AlunoId"] == 3
    assert wire["observacao"] == ""
    assert wire["synced"] is False
    assert set(wire) >= {"id", "date", "present", "createdAt", "updatedAt", "lastSync"}
