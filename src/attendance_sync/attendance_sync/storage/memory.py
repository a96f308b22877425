from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..classes.model import SchoolClass
from ..classes.repository import ClassRepository
from ..common.datetime_utils import latest_iso, now_iso
from ..common.validators import require_iso_date
from ..core.exceptions import ValidationError
from ..schools.model import School
from ..schools.repository import SchoolRepository
from ..students.model import Student
from ..students.repository import StudentRepository
from .base import Snapshot, Storage, read_snapshot


def _is_local_only(row) -> bool:
    return not row.synced and not row.last_sync


class _MemoryState:
    """Indexed in-process collections shared by the memory repositories.

    Every mutation runs under one re-entrant lock; `transaction()` restores the
    previous state when the block raises, which makes bulk saves atomic.
    """

    TABLES = ("schools", "classes", "students", "attendance")

    def __init__(self):
        self.lock = threading.RLock()
        self.rows: dict[str, dict[int, Any]] = {t: {} for t in self.TABLES}
        self.seq: dict[str, int] = {t: 0 for t in self.TABLES}
        # Secondary indexes: foreign key -> ids, (student_id, date) -> id
        self.by_fk: dict[str, defaultdict] = {
            "classes": defaultdict(set),
            "students": defaultdict(set),
            "attendance": defaultdict(set),
        }
        self.attendance_by_key: dict[tuple[int, str], int] = {}

    def next_id(self, table: str) -> int:
        self.seq[table] = max(self.seq[table], max(self.rows[table], default=0)) + 1
        return self.seq[table]

    def bump(self, table: str, ident: int) -> None:
        self.seq[table] = max(self.seq[table], int(ident))

    @contextmanager
    def transaction(self):
        with self.lock:
            saved = (
                {t: dict(r) for t, r in self.rows.items()},
                dict(self.seq),
                {t: defaultdict(set, {k: set(v) for k, v in idx.items()}) for t, idx in self.by_fk.items()},
                dict(self.attendance_by_key),
            )
            try:
                yield
            except BaseException:
                self.rows, self.seq, self.by_fk, self.attendance_by_key = saved
                raise

    def clear(self) -> None:
        with self.lock:
            for table in self.TABLES:
                self.rows[table].clear()
                self.seq[table] = 0
            for index in self.by_fk.values():
                index.clear()
            self.attendance_by_key.clear()


class _MemoryTable:
    table: str = ""
    fk_field: Optional[str] = None

    def __init__(self, state: _MemoryState):
        self._state = state

    @property
    def _rows(self) -> dict[int, Any]:
        return self._state.rows[self.table]

    def _index_remove(self, row) -> None:
        if self.fk_field and row is not None:
            self._state.by_fk[self.table][getattr(row, self.fk_field)].discard(row.id)

    def _index_add(self, row) -> None:
        if self.fk_field:
            self._state.by_fk[self.table][getattr(row, self.fk_field)].add(row.id)

    def _put(self, row) -> None:
        self._index_remove(self._rows.get(row.id))
        self._rows[row.id] = row
        self._index_add(row)

    def _pop(self, ident: int):
        row = self._rows.pop(ident, None)
        self._index_remove(row)
        return row

    def _ids_for(self, fk_value) -> list[int]:
        return sorted(self._state.by_fk[self.table].get(fk_value, ()))

    def _children(self) -> Sequence["_MemoryTable"]:
        return ()

    def _repoint_children(self, old_id: int, new_id: int) -> None:
        for child in self._children():
            for child_id in child._ids_for(old_id):
                child._put(replace(child._rows[child_id], **{child.fk_field: new_id}))

    def _relocate(self, row) -> int:
        new_id = self._state.next_id(self.table)
        self._pop(row.id)
        self._put(replace(row, id=new_id))
        self._repoint_children(row.id, new_id)
        return new_id

    def _save_plain(self, entity) -> int:
        now = now_iso()
        if entity.id is None and entity.synced:
            raise ValidationError(f"A synced {self.table[:-1]} must carry its server id")

        existing = self._rows.get(int(entity.id)) if entity.id is not None else None
        if existing is not None and entity.synced and _is_local_only(existing):
            self._relocate(existing)
            existing = None
        if existing is not None:
            stored = replace(
                entity,
                id=int(entity.id),
                created_at=existing.created_at or entity.created_at,
                updated_at=latest_iso(existing.updated_at, entity.updated_at or now),
                last_sync=entity.last_sync or existing.last_sync,
            )
        else:
            ident = int(entity.id) if entity.id is not None else self._state.next_id(self.table)
            self._state.bump(self.table, ident)
            stored = replace(
                entity,
                id=ident,
                created_at=entity.created_at or now,
                updated_at=entity.updated_at or now,
            )
        self._put(stored)
        return int(stored.id)

    def save_bulk(self, entities: Iterable) -> None:
        with self._state.transaction():
            for entity in entities:
                self._save_unlocked(entity)

    def save(self, entity) -> int:
        with self._state.transaction():
            return self._save_unlocked(entity)

    def _save_unlocked(self, entity) -> int:
        return self._save_plain(entity)

    def update_sync_status(self, ident: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        with self._state.lock:
            row = self._rows.get(int(ident))
            if row is not None:
                self._put(replace(row, synced=bool(synced), last_sync=last_sync or row.last_sync))

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with self._state.transaction():
            current = self._rows.get(int(local_id))
            if current is None:
                raise ValidationError(f"{self.table} row {local_id} does not exist")

            server_id = int(server_id)
            if server_id != current.id:
                occupant = self._rows.get(server_id)
                if occupant is not None and _is_local_only(occupant):
                    self._relocate(occupant)
                elif occupant is not None:
                    self._pop(server_id)
                self._pop(current.id)
                self._repoint_children(current.id, server_id)

            self._state.bump(self.table, server_id)
            self._put(replace(current, id=server_id, synced=True, last_sync=last_sync or now_iso()))
            return server_id


class MemorySchoolRepository(_MemoryTable, SchoolRepository):
    table = "schools"

    def get_all(self) -> Sequence[School]:
        with self._state.lock:
            return sorted(self._rows.values(), key=lambda s: (s.name, s.id))

    def get_by_id(self, school_id: int) -> Optional[School]:
        with self._state.lock:
            return self._rows.get(int(school_id))

    def delete(self, school_id: int) -> None:
        with self._state.transaction():
            classes = _MemoryClassView(self._state)
            for class_id in classes._ids_for(int(school_id)):
                classes._put(replace(classes._rows[class_id], school_id=None))
            self._pop(int(school_id))

    def _children(self) -> Sequence[_MemoryTable]:
        return (_MemoryClassView(self._state),)


class _MemoryClassView(_MemoryTable):
    table = "classes"
    fk_field = "school_id"

    def _children(self) -> Sequence[_MemoryTable]:
        return (_MemoryStudentView(self._state),)


class _MemoryStudentView(_MemoryTable):
    table = "students"
    fk_field = "class_id"

    def _children(self) -> Sequence[_MemoryTable]:
        return (_MemoryAttendanceView(self._state),)


class _MemoryAttendanceView(_MemoryTable):
    table = "attendance"
    fk_field = "student_id"

    def _pop(self, ident: int):
        row = super()._pop(ident)
        if row is not None and self._state.attendance_by_key.get(row.key) == row.id:
            del self._state.attendance_by_key[row.key]
        return row

    def _put(self, row) -> None:
        previous = self._rows.get(row.id)
        if previous is not None and self._state.attendance_by_key.get(previous.key) == previous.id:
            del self._state.attendance_by_key[previous.key]
        super()._put(row)
        self._state.attendance_by_key[row.key] = row.id


class MemoryClassRepository(_MemoryClassView, ClassRepository):
    def get_all(self, *, school_id: Optional[int] = None) -> Sequence[SchoolClass]:
        with self._state.lock:
            if school_id is not None:
                rows = [self._rows[i] for i in self._ids_for(int(school_id))]
            else:
                rows = list(self._rows.values())
            return sorted(rows, key=lambda c: (c.name, c.id))

    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        with self._state.lock:
            return self._rows.get(int(class_id))

    def delete(self, class_id: int) -> None:
        with self._state.transaction():
            students = _MemoryStudentView(self._state)
            for student_id in students._ids_for(int(class_id)):
                students._put(replace(students._rows[student_id], class_id=None))
            self._pop(int(class_id))


class MemoryStudentRepository(_MemoryStudentView, StudentRepository):
    def get_all(self, *, class_id: Optional[int] = None) -> Sequence[Student]:
        with self._state.lock:
            if class_id is not None:
                rows = [self._rows[i] for i in self._ids_for(int(class_id))]
            else:
                rows = list(self._rows.values())
            return [self._with_attendance(s) for s in sorted(rows, key=lambda s: (s.name, s.id))]

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with self._state.lock:
            row = self._rows.get(int(student_id))
            return self._with_attendance(row) if row else None

    def delete(self, student_id: int) -> None:
        with self._state.transaction():
            attendance = _MemoryAttendanceView(self._state)
            for attendance_id in attendance._ids_for(int(student_id)):
                attendance._pop(attendance_id)
            self._pop(int(student_id))

    def _save_unlocked(self, entity: Student) -> int:
        return self._save_plain(replace(entity, attendance=()))

    def _with_attendance(self, student: Student) -> Student:
        attendance = _MemoryAttendanceView(self._state)
        records = [attendance._rows[i] for i in attendance._ids_for(student.id)]
        records.sort(key=lambda r: r.date, reverse=True)
        return replace(student, attendance=tuple(records))


class MemoryAttendanceRepository(_MemoryAttendanceView, AttendanceRepository):
    def get_all(self) -> Sequence[AttendanceRecord]:
        with self._state.lock:
            return sorted(self._rows.values(), key=lambda r: (r.date, -r.student_id), reverse=True)

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with self._state.lock:
            return self._rows.get(int(attendance_id))

    def get_for_student(self, student_id: int, *, date: Optional[str] = None) -> Sequence[AttendanceRecord]:
        with self._state.lock:
            rows = [self._rows[i] for i in self._ids_for(int(student_id))]
            if date:
                rows = [r for r in rows if r.date == date]
            return sorted(rows, key=lambda r: r.date, reverse=True)

    def get_for_student_and_date(self, student_id: int, date: str) -> Optional[AttendanceRecord]:
        with self._state.lock:
            ident = self._state.attendance_by_key.get((int(student_id), date))
            return self._rows.get(ident) if ident is not None else None

    def delete(self, attendance_id: int) -> None:
        with self._state.transaction():
            self._pop(int(attendance_id))

    def get_pending(self) -> Sequence[AttendanceRecord]:
        with self._state.lock:
            return sorted((r for r in self._rows.values() if not r.synced), key=lambda r: r.id)

    def count_pending(self) -> int:
        with self._state.lock:
            return sum(1 for r in self._rows.values() if not r.synced)

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with self._state.transaction():
            current = self._rows.get(int(local_id))
            if current is None:
                raise ValidationError(f"Attendance record {local_id} does not exist")
            return self._save_unlocked(
                replace(current, id=int(server_id), synced=True, last_sync=last_sync or now_iso())
            )

    def _save_unlocked(self, record: AttendanceRecord) -> int:
        require_iso_date(record.date)
        if record.synced and record.id is None:
            raise ValidationError("A synced attendance record must carry its server id")

        now = now_iso()
        key_id = self._state.attendance_by_key.get(record.key)
        by_key = self._rows.get(key_id) if key_id is not None else None

        if record.id is None:
            if by_key is not None:
                return self._store(by_key.id, by_key, record, now)
            return self._store(self._state.next_id(self.table), None, record, now)

        target_id = int(record.id)
        by_id = self._rows.get(target_id)

        if by_key is not None and by_key.id != target_id:
            # Same (student, date) stored under another id: the incoming id wins.
            if by_id is not None:
                self._release_id(by_id)
            self._pop(by_key.id)
            return self._store(target_id, by_key, record, now)

        if by_id is not None and by_key is None and _is_local_only(by_id):
            self._relocate(by_id)
            by_id = None

        return self._store(target_id, by_id, record, now)

    def _release_id(self, row: AttendanceRecord) -> None:
        if _is_local_only(row):
            self._relocate(row)
        else:
            self._pop(row.id)

    def _store(self, ident: int, existing: Optional[AttendanceRecord], record: AttendanceRecord, now: str) -> int:
        self._state.bump(self.table, ident)
        stored = replace(
            record,
            id=ident,
            observation=record.observation or None,
            created_at=(existing.created_at if existing else None) or record.created_at or now,
            updated_at=latest_iso(existing.updated_at if existing else None, record.updated_at or now),
            last_sync=record.last_sync or (existing.last_sync if existing else None),
        )
        self._put(stored)
        return ident


class MemoryStorage(Storage):
    """In-process indexed store, used where no writable database file is available."""

    name = "memory"

    def __init__(self):
        self._state = _MemoryState()
        self.schools = MemorySchoolRepository(self._state)
        self.classes = MemoryClassRepository(self._state)
        self.students = MemoryStudentRepository(self._state)
        self.attendance = MemoryAttendanceRepository(self._state)

    def clear(self) -> None:
        self._state.clear()

    def snapshot(self) -> Snapshot:
        with self._state.lock:
            return read_snapshot(self)
