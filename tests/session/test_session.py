from __future__ import annotations

import asyncio

import pytest

from src.attendance_sync.attendance_sync.attendance.recorder import AttendanceRecorder
from src.attendance_sync.attendance_sync.catalog.service import CatalogService
from src.attendance_sync.attendance_sync.classes.model import SchoolClass
from src.attendance_sync.attendance_sync.common.datetime_utils import today_iso
from src.attendance_sync.attendance_sync.core.exceptions import ValidationError
from src.attendance_sync.attendance_sync.schools.model import School
from src.attendance_sync.attendance_sync.session.service import AttendanceSession
from src.attendance_sync.attendance_sync.students.model import Student
from src.attendance_sync.attendance_sync.sync.service import SyncService


def _session(storage, api, monitor) -> AttendanceSession:
    return AttendanceSession(
        storage,
        CatalogService(storage, api, monitor),
        AttendanceRecorder(storage.attendance, api, monitor),
        SyncService(storage, api, monitor),
    )


def _seed(storage):
    school = storage.schools.save(School(name="Central", address=""))
    other = storage.schools.save(School(name="Norte", address=""))
    class_a = storage.classes.save(SchoolClass(name="5A", school_id=school))
    class_b = storage.classes.save(SchoolClass(name="7C", school_id=other))
    ana = storage.students.save(Student(name="Ana", class_id=class_a))
    storage.students.save(Student(name="Bia", class_id=class_b))
    return school, other, class_a, class_b, ana


def test_selecting_a_school_clears_the_class(memory_storage, api, offline):
    school, other, class_a, class_b, _ = _seed(memory_storage)
    session = _session(memory_storage, api, offline)

    async def scenario():
        await session.load_schools()
        await session.select_school(school)
        await session.select_class(class_a)
        return await session.select_school(other)

    classes = asyncio.run(scenario())

    assert session.selected_date == today_iso()
    assert session.selected_school.id == other
    assert session.selected_class is None
    assert session.students == ()
    assert [c.id for c in classes] == [class_b]
    assert len(session.schools) == 2


def test_record_refreshes_attendance_for_selected_date(memory_storage, api, offline):
    school, _, class_a, _, ana = _seed(memory_storage)
    session = _session(memory_storage, api, offline)

    async def scenario():
        await session.select_school(school)
        await session.select_class(class_a)
        session.change_date("2024-03-01")
        return await session.record(ana, False, "doente")

    assert asyncio.run(scenario()) is True
    assert [(r.student_id, r.date, r.present) for r in session.attendance] == [(ana, "2024-03-01", False)]
    assert session.pending_count() == 1

    session.change_date("2024-03-02")
    assert session.attendance == ()


def test_unknown_selection_is_rejected(memory_storage, api, offline):
    session = _session(memory_storage, api, offline)

    with pytest.raises(ValidationError):
        asyncio.run(session.select_school(404))
    with pytest.raises(ValidationError):
        session.change_date("tomorrow")


def test_sync_replaces_projections_with_snapshot(memory_storage, api, online, server):
    school, _, class_a, _, ana = _seed(memory_storage)
    session = _session(memory_storage, api, online)

    async def scenario():
        await session.select_school(school)
        await session.select_class(class_a)
        session.change_date("2024-03-01")
        server.seed("presencas", {"id": 300, "AlunoId": ana, "date": "2024-03-01", "present": True})
        return await session.sync()

    result = asyncio.run(scenario())

    assert result.success is True, result.message
    assert [r.id for r in session.attendance] == [300]
    assert [s.id for s in session.students] == [ana]
    status = session.sync_status
    assert status.loading is False
    assert status.last_sync == result.finished_at
    assert status.error is None
