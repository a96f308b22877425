from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional, Sequence

from ..attendance.sqlite_attendance_repository import COLUMNS as ATTENDANCE_COLUMNS
from ..attendance.sqlite_attendance_repository import to_record
from ..common.datetime_utils import latest_iso, now_iso
from ..core.exceptions import ValidationError
from ..storage.connection import DatabaseConnection
from ..storage.sqlite_base import (
    as_bool,
    as_optional_int,
    db_cursor,
    fetchall,
    fetchone,
    is_local_only,
    rekey_row,
    relocate_row,
)
from .model import Student
from .repository import StudentRepository

_COLUMNS = "id, name, class_id, synced, created_at, updated_at, last_sync"
_CHILDREN = (("attendance_records", "student_id"),)


class SQLiteStudentRepository(StudentRepository):
    """Students with their attendance cache rebuilt from `attendance_records` on read."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_all(self, *, class_id: Optional[int] = None) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            if class_id is not None:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM students WHERE class_id=? ORDER BY name, id",
                    (int(class_id),),
                )
            else:
                cur.execute(f"SELECT {_COLUMNS} FROM students ORDER BY name, id")
            rows = fetchall(cur)
            return self._with_attendance(cur, rows, scoped=class_id is not None)

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE id=?", (int(student_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._with_attendance(cur, [r])[0]

    def save(self, student: Student) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._save(cur, student)

    def save_bulk(self, students: Iterable[Student]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for student in students:
                self._save(cur, student)

    def delete(self, student_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE student_id=?", (int(student_id),))
            cur.execute("DELETE FROM students WHERE id=?", (int(student_id),))

    def update_sync_status(self, student_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE students SET synced=?, last_sync=COALESCE(?, last_sync) WHERE id=?",
                (int(bool(synced)), last_sync, int(student_id)),
            )

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return rekey_row(
                cur, "students", int(local_id), int(server_id), children=_CHILDREN, last_sync=last_sync or now_iso()
            )

    def _with_attendance(self, cur, rows: list[dict], *, scoped: bool = True) -> list[Student]:
        if not rows:
            return []

        if scoped:
            ids = [int(r["id"]) for r in rows]
            placeholders = ",".join("?" for _ in ids)
            cur.execute(
                f"SELECT {ATTENDANCE_COLUMNS} FROM attendance_records WHERE student_id IN ({placeholders}) ORDER BY date DESC",
                tuple(ids),
            )
        else:
            cur.execute(f"SELECT {ATTENDANCE_COLUMNS} FROM attendance_records ORDER BY date DESC")
        by_student = defaultdict(list)
        for a in fetchall(cur):
            by_student[int(a["student_id"])].append(to_record(a))

        return [
            Student(
                id=int(r["id"]),
                name=r["name"],
                class_id=as_optional_int(r.get("class_id")),
                synced=as_bool(r.get("synced")),
                created_at=r.get("created_at"),
                updated_at=r.get("updated_at"),
                last_sync=r.get("last_sync"),
                attendance=tuple(by_student.get(int(r["id"]), ())),
            )
            for r in rows
        ]

    def _save(self, cur, student: Student) -> int:
        now = now_iso()
        existing = None
        if student.id is not None:
            cur.execute(
                "SELECT created_at, updated_at, synced, last_sync FROM students WHERE id=?",
                (int(student.id),),
            )
            existing = fetchone(cur)
            if existing and student.synced and is_local_only(existing):
                relocate_row(cur, "students", int(student.id), _CHILDREN)
                existing = None
        elif student.synced:
            raise ValidationError("A synced student must carry its server id")

        if existing:
            cur.execute(
                """
                UPDATE students
                SET name=?, class_id=?, synced=?, created_at=?, updated_at=?, last_sync=COALESCE(?, last_sync)
                WHERE id=?
                """,
                (
                    student.name,
                    student.class_id,
                    int(student.synced),
                    existing.get("created_at") or student.created_at,
                    latest_iso(existing.get("updated_at"), student.updated_at or now),
                    student.last_sync,
                    int(student.id),
                ),
            )
            return int(student.id)

        cur.execute(
            """
            INSERT INTO students(id, name, class_id, synced, created_at, updated_at, last_sync)
            VALUES(?,?,?,?,?,?,?)
            """,
            (
                student.id,
                student.name,
                student.class_id,
                int(student.synced),
                student.created_at or now,
                student.updated_at or now,
                student.last_sync,
            ),
        )
        return int(cur.lastrowid)
