from __future__ import annotations

import asyncio

import httpx
import pytest

from src.attendance_sync.attendance_sync.attendance.recorder import AttendanceRecorder
from src.attendance_sync.attendance_sync.core.exceptions import StorageError, ValidationError
from src.attendance_sync.attendance_sync.remote.api import AttendanceApi
from src.attendance_sync.attendance_sync.remote.client import CancelToken, RemoteClient


class BrokenAttendance:
    def save(self, record):
        raise StorageError("disk full")

    def count_pending(self):
        return 0


def test_offline_mark_is_stored_pending_without_requests(memory_storage, api, offline, server):
    recorder = AttendanceRecorder(memory_storage.attendance, api, offline)

    ok = asyncio.run(recorder.record_attendance(3, True, "  chegou cedo ", date="2024-03-01"))

    assert ok is True
    assert server.requests == []
    record = memory_storage.attendance.get_for_student_and_date(3, "2024-03-01")
    assert record.observation == "chegou cedo"
    assert record.synced is False
    assert recorder.pending_count() == 1


def test_marking_twice_updates_the_same_record(storage, api, offline):
    recorder = AttendanceRecorder(storage.attendance, api, offline)

    asyncio.run(recorder.record_attendance(3, True, date="2024-03-01"))
    asyncio.run(recorder.record_attendance(3, False, "saiu cedo", date="2024-03-01"))

    rows = storage.attendance.get_for_student(3)
    assert len(rows) == 1
    assert rows[0].present is False


def test_online_mark_takes_server_id_and_is_synced(storage, api, online, server):
    recorder = AttendanceRecorder(storage.attendance, api, online)

    ok = asyncio.run(recorder.record_attendance(3, True, date="2024-03-01"))

    assert ok is True
    assert server.paths() == ["/api/presencas"]
    record = storage.attendance.get_for_student_and_date(3, "2024-03-01")
    assert record.synced is True
    assert record.id in {int(k) for k in server.data["presencas"]}
    assert recorder.pending_count() == 0


def test_server_failure_keeps_mark_pending(memory_storage, api, online, server):
    server.fail[("POST", "/api/presencas")] = 500
    recorder = AttendanceRecorder(memory_storage.attendance, api, online)

    ok = asyncio.run(recorder.record_attendance(3, True, date="2024-03-01"))

    assert ok is True
    assert memory_storage.attendance.get_for_student_and_date(3, "2024-03-01").synced is False


def test_cancelled_upload_never_marks_synced(memory_storage, api, online, server):
    recorder = AttendanceRecorder(memory_storage.attendance, api, online)

    async def scenario():
        server.gate = asyncio.Event()
        token = CancelToken()
        task = asyncio.create_task(recorder.record_attendance(3, True, date="2024-03-01", cancel_token=token))
        while not server.requests:
            await asyncio.sleep(0.001)
        token.cancel()
        return await task

    assert asyncio.run(scenario()) is True
    record = memory_storage.attendance.get_for_student_and_date(3, "2024-03-01")
    assert record.synced is False
    assert recorder.pending_count() == 1


def test_storage_failure_returns_false(api, offline):
    recorder = AttendanceRecorder(BrokenAttendance(), api, offline)

    assert asyncio.run(recorder.record_attendance(3, True, date="2024-03-01")) is False


def test_invalid_input_is_rejected(memory_storage, api, offline):
    recorder = AttendanceRecorder(memory_storage.attendance, api, offline)

    with pytest.raises(ValidationError):
        asyncio.run(recorder.record_attendance(0, True))
    with pytest.raises(ValidationError):
        asyncio.run(recorder.record_attendance(3, True, date="01/03/2024"))
    with pytest.raises(ValidationError):
        asyncio.run(recorder.record_attendance(3, "yes"))


def test_unusable_server_id_keeps_mark_pending(memory_storage, online):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"id": "abc"})

    api = AttendanceApi(RemoteClient("http://api.test", transport=httpx.MockTransport(handler)))
    recorder = AttendanceRecorder(memory_storage.attendance, api, online)

    ok = asyncio.run(recorder.record_attendance(3, True, date="2024-03-01"))

    assert ok is True
    assert memory_storage.attendance.get_for_student_and_date(3, "2024-03-01").synced is False
    assert recorder.pending_count() == 1
