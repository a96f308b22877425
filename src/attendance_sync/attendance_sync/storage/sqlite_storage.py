from __future__ import annotations

from ..attendance.sqlite_attendance_repository import SQLiteAttendanceRepository
from ..classes.sqlite_class_repository import SQLiteClassRepository
from ..schools.sqlite_school_repository import SQLiteSchoolRepository
from ..students.sqlite_student_repository import SQLiteStudentRepository
from .base import Snapshot, Storage, read_snapshot
from .bootstrap import apply_schema
from .connection import DatabaseConnection
from .sqlite_base import db_cursor


class SQLiteStorage(Storage):
    """File-backed embedded SQL store."""

    name = "sqlite"

    def __init__(self, conn_factory: DatabaseConnection, *, init_schema: bool = True):
        self._conn_factory = conn_factory
        if init_schema:
            apply_schema(conn_factory)

        self.schools = SQLiteSchoolRepository(conn_factory)
        self.classes = SQLiteClassRepository(conn_factory)
        self.students = SQLiteStudentRepository(conn_factory)
        self.attendance = SQLiteAttendanceRepository(conn_factory)

    @property
    def path(self) -> str:
        return self._conn_factory.path

    def clear(self) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records")
            cur.execute("DELETE FROM students")
            cur.execute("DELETE FROM classes")
            cur.execute("DELETE FROM schools")

    def snapshot(self) -> Snapshot:
        return read_snapshot(self)
