from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import latest_iso, now_iso
from ..core.exceptions import ValidationError
from ..storage.connection import DatabaseConnection
from ..storage.sqlite_base import as_bool, db_cursor, fetchall, fetchone, is_local_only, rekey_row, relocate_row
from .model import School
from .repository import SchoolRepository

_COLUMNS = "id, name, address, synced, created_at, updated_at, last_sync"
_CHILDREN = (("classes", "school_id"),)


def _to_school(r: dict) -> School:
    return School(
        id=int(r["id"]),
        name=r["name"],
        address=r.get("address") or "",
        synced=as_bool(r.get("synced")),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        last_sync=r.get("last_sync"),
    )


class SQLiteSchoolRepository(SchoolRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_all(self) -> Sequence[School]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM schools ORDER BY name, id")
            return [_to_school(r) for r in fetchall(cur)]

    def get_by_id(self, school_id: int) -> Optional[School]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM schools WHERE id=?", (int(school_id),))
            r = fetchone(cur)
            return _to_school(r) if r else None

    def save(self, school: School) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._save(cur, school)

    def save_bulk(self, schools: Iterable[School]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for school in schools:
                self._save(cur, school)

    def delete(self, school_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE classes SET school_id=NULL WHERE school_id=?", (int(school_id),))
            cur.execute("DELETE FROM schools WHERE id=?", (int(school_id),))

    def update_sync_status(self, school_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE schools SET synced=?, last_sync=COALESCE(?, last_sync) WHERE id=?",
                (int(bool(synced)), last_sync, int(school_id)),
            )

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return rekey_row(
                cur, "schools", int(local_id), int(server_id), children=_CHILDREN, last_sync=last_sync or now_iso()
            )

    def _save(self, cur, school: School) -> int:
        now = now_iso()
        existing = None
        if school.id is not None:
            cur.execute(
                "SELECT created_at, updated_at, synced, last_sync FROM schools WHERE id=?",
                (int(school.id),),
            )
            existing = fetchone(cur)
            if existing and school.synced and is_local_only(existing):
                # Server record takes the id; the unsent local school moves aside.
                relocate_row(cur, "schools", int(school.id), _CHILDREN)
                existing = None
        elif school.synced:
            raise ValidationError("A synced school must carry its server id")

        if existing:
            cur.execute(
                """
                UPDATE schools
                SET name=?, address=?, synced=?, created_at=?, updated_at=?, last_sync=COALESCE(?, last_sync)
                WHERE id=?
                """,
                (
                    school.name,
                    school.address or "",
                    int(school.synced),
                    existing.get("created_at") or school.created_at,
                    latest_iso(existing.get("updated_at"), school.updated_at or now),
                    school.last_sync,
                    int(school.id),
                ),
            )
            return int(school.id)

        cur.execute(
            """
            INSERT INTO schools(id, name, address, synced, created_at, updated_at, last_sync)
            VALUES(?,?,?,?,?,?,?)
            """,
            (
                school.id,
                school.name,
                school.address or "",
                int(school.synced),
                school.created_at or now,
                school.updated_at or now,
                school.last_sync,
            ),
        )
        return int(cur.lastrowid)
