from __future__ import annotations

import sqlite3

import pytest

from src.attendance_sync.attendance_sync.attendance.model import AttendanceRecord
from src.attendance_sync.attendance_sync.core.exceptions import StorageError, ValidationError
from src.attendance_sync.attendance_sync.storage.bootstrap import apply_schema, list_tables, upgrade_columns
from src.attendance_sync.attendance_sync.storage.connection import DatabaseConnection, SQLiteConfig
from src.attendance_sync.attendance_sync.storage.factory import select_storage
from src.attendance_sync.attendance_sync.storage.memory import MemoryStorage
from src.attendance_sync.attendance_sync.storage.sqlite_storage import SQLiteStorage


def test_apply_schema_is_idempotent(tmp_path):
    conn = DatabaseConnection(SQLiteConfig(path=str(tmp_path / "nested" / "escola.db")))

    apply_schema(conn)
    apply_schema(conn)

    assert list_tables(conn) == ["attendance_records", "classes", "schools", "students"]


def test_old_database_gets_observation_column(tmp_path):
    path = tmp_path / "old.db"
    raw = sqlite3.connect(str(path))
    raw.execute(
        "CREATE TABLE attendance_records (id INTEGER PRIMARY KEY AUTOINCREMENT, student_id INTEGER NOT NULL,"
        " date TEXT NOT NULL, present INTEGER NOT NULL, synced INTEGER NOT NULL DEFAULT 0,"
        " created_at TEXT, updated_at TEXT, UNIQUE (student_id, date))"
    )
    raw.execute("INSERT INTO attendance_records(student_id, date, present) VALUES (1, '2024-03-01', 1)")
    raw.commit()
    raw.close()

    storage = SQLiteStorage(DatabaseConnection(SQLiteConfig(path=str(path))))

    old = storage.attendance.get_for_student_and_date(1, "2024-03-01")
    assert old.observation is None
    storage.attendance.save(AttendanceRecord(student_id=1, date="2024-03-01", present=False, observation="doente"))
    assert storage.attendance.get_for_student_and_date(1, "2024-03-01").observation == "doente"
    assert upgrade_columns(DatabaseConnection(SQLiteConfig(path=str(path)))) == []


def test_unwritable_location_surfaces_storage_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    conn = DatabaseConnection(SQLiteConfig(path=str(blocker / "escola.db")))

    with pytest.raises((StorageError, OSError)):
        apply_schema(conn)


def test_select_storage_variants(tmp_path):
    assert isinstance(select_storage(backend="memory", db_path=str(tmp_path / "a.db")), MemoryStorage)
    assert isinstance(select_storage(backend="sqlite", db_path=str(tmp_path / "b.db")), SQLiteStorage)
    assert isinstance(select_storage(backend="auto", db_path=str(tmp_path / "c.db")), SQLiteStorage)
    assert isinstance(select_storage(backend="auto", db_path=":memory:"), MemoryStorage)


def test_select_storage_rejects_unknown_backend(tmp_path):
    with pytest.raises(ValidationError):
        select_storage(backend="indexeddb", db_path=str(tmp_path / "a.db"))
