from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import latest_iso, now_iso
from ..common.validators import require_iso_date
from ..core.exceptions import ValidationError
from ..storage.connection import DatabaseConnection
from ..storage.sqlite_base import as_bool, db_cursor, fetchall, fetchone, is_local_only, relocate_row
from .model import AttendanceRecord
from .repository import AttendanceRepository

COLUMNS = "id, student_id, date, present, observation, synced, created_at, updated_at, last_sync"


def to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        id=int(r["id"]),
        student_id=int(r["student_id"]),
        date=r["date"],
        present=as_bool(r["present"]),
        observation=r.get("observation"),
        synced=as_bool(r.get("synced")),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        last_sync=r.get("last_sync"),
    )


class SQLiteAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_all(self) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {COLUMNS} FROM attendance_records ORDER BY date DESC, student_id ASC")
            return [to_record(r) for r in fetchall(cur)]

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            r = self._fetch_by_id(cur, int(attendance_id))
            return to_record(r) if r else None

    def get_for_student(self, student_id: int, *, date: Optional[str] = None) -> Sequence[AttendanceRecord]:
        clauses = ["student_id=?"]
        params: list[object] = [int(student_id)]
        if date:
            clauses.append("date=?")
            params.append(date)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {COLUMNS} FROM attendance_records WHERE {' AND '.join(clauses)} ORDER BY date DESC",
                tuple(params),
            )
            return [to_record(r) for r in fetchall(cur)]

    def get_for_student_and_date(self, student_id: int, date: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            r = self._fetch_by_key(cur, int(student_id), date)
            return to_record(r) if r else None

    def save(self, record: AttendanceRecord) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._save(cur, record)

    def save_bulk(self, records: Iterable[AttendanceRecord]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for record in records:
                self._save(cur, record)

    def delete(self, attendance_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE id=?", (int(attendance_id),))

    def get_pending(self) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {COLUMNS} FROM attendance_records WHERE synced=0 ORDER BY id")
            return [to_record(r) for r in fetchall(cur)]

    def count_pending(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM attendance_records WHERE synced=0")
            return int(fetchone(cur)["n"])

    def update_sync_status(self, attendance_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET synced=?, last_sync=COALESCE(?, last_sync) WHERE id=?",
                (int(bool(synced)), last_sync, int(attendance_id)),
            )

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            r = self._fetch_by_id(cur, int(local_id))
            if not r:
                raise ValidationError(f"Attendance record {local_id} does not exist")
            current = to_record(r)
            return self._save(
                cur,
                AttendanceRecord(
                    id=int(server_id),
                    student_id=current.student_id,
                    date=current.date,
                    present=current.present,
                    observation=current.observation,
                    synced=True,
                    created_at=current.created_at,
                    updated_at=current.updated_at,
                    last_sync=last_sync or now_iso(),
                ),
            )

    # -- internals -------------------------------------------------------

    def _fetch_by_id(self, cur, attendance_id: int) -> Optional[dict]:
        cur.execute(f"SELECT {COLUMNS} FROM attendance_records WHERE id=?", (attendance_id,))
        return fetchone(cur)

    def _fetch_by_key(self, cur, student_id: int, date: str) -> Optional[dict]:
        cur.execute(
            f"SELECT {COLUMNS} FROM attendance_records WHERE student_id=? AND date=?",
            (student_id, date),
        )
        return fetchone(cur)

    def _save(self, cur, record: AttendanceRecord) -> int:
        require_iso_date(record.date)
        if record.synced and record.id is None:
            raise ValidationError("A synced attendance record must carry its server id")

        now = now_iso()
        by_key = self._fetch_by_key(cur, int(record.student_id), record.date)

        if record.id is None:
            if by_key:
                return self._update(cur, int(by_key["id"]), by_key, record, now)
            return self._insert(cur, record, now)

        target_id = int(record.id)
        by_id = self._fetch_by_id(cur, target_id)

        if by_key and int(by_key["id"]) != target_id:
            # Same (student, date) stored under another id: the incoming id wins.
            if by_id:
                self._release_id(cur, by_id)
            cur.execute("UPDATE attendance_records SET id=? WHERE id=?", (target_id, int(by_key["id"])))
            return self._update(cur, target_id, by_key, record, now)

        if by_id and by_key is None and is_local_only(by_id):
            relocate_row(cur, "attendance_records", target_id)
            by_id = None

        if by_id:
            return self._update(cur, target_id, by_id, record, now)
        return self._insert(cur, record, now)

    def _release_id(self, cur, row: dict) -> None:
        if is_local_only(row):
            relocate_row(cur, "attendance_records", int(row["id"]))
        else:
            cur.execute("DELETE FROM attendance_records WHERE id=?", (int(row["id"]),))

    def _update(self, cur, target_id: int, existing: dict, record: AttendanceRecord, now: str) -> int:
        cur.execute(
            """
            UPDATE attendance_records
            SET student_id=?, date=?, present=?, observation=?, synced=?,
                created_at=?, updated_at=?, last_sync=COALESCE(?, last_sync)
            WHERE id=?
            """,
            (
                int(record.student_id),
                record.date,
                int(bool(record.present)),
                record.observation or None,
                int(bool(record.synced)),
                existing.get("created_at") or record.created_at or now,
                latest_iso(existing.get("updated_at"), record.updated_at or now),
                record.last_sync,
                target_id,
            ),
        )
        return target_id

    def _insert(self, cur, record: AttendanceRecord, now: str) -> int:
        cur.execute(
            """
            INSERT INTO attendance_records(id, student_id, date, present, observation, synced, created_at, updated_at, last_sync)
            VALUES(?,?,?,?,?,?,?,?,?)
            """,
            (
                record.id,
                int(record.student_id),
                record.date,
                int(bool(record.present)),
                record.observation or None,
                int(bool(record.synced)),
                record.created_at or now,
                record.updated_at or now,
                record.last_sync,
            ),
        )
        return int(cur.lastrowid)
