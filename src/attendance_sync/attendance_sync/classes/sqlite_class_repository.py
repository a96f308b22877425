from __future__ import annotations

from typing import Iterable, Optional, Sequence

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
from .model import SchoolClass
from .repository import ClassRepository

_COLUMNS = "id, name, school_id, synced, created_at, updated_at, last_sync"
_CHILDREN = (("students", "class_id"),)


def _to_class(r: dict) -> SchoolClass:
    return SchoolClass(
        id=int(r["id"]),
        name=r["name"],
        school_id=as_optional_int(r.get("school_id")),
        synced=as_bool(r.get("synced")),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        last_sync=r.get("last_sync"),
    )


class SQLiteClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_all(self, *, school_id: Optional[int] = None) -> Sequence[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            if school_id is not None:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM classes WHERE school_id=? ORDER BY name, id",
                    (int(school_id),),
                )
            else:
                cur.execute(f"SELECT {_COLUMNS} FROM classes ORDER BY name, id")
            return [_to_class(r) for r in fetchall(cur)]

    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM classes WHERE id=?", (int(class_id),))
            r = fetchone(cur)
            return _to_class(r) if r else None

    def save(self, school_class: SchoolClass) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._save(cur, school_class)

    def save_bulk(self, classes: Iterable[SchoolClass]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for school_class in classes:
                self._save(cur, school_class)

    def delete(self, class_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE students SET class_id=NULL WHERE class_id=?", (int(class_id),))
            cur.execute("DELETE FROM classes WHERE id=?", (int(class_id),))

    def update_sync_status(self, class_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE classes SET synced=?, last_sync=COALESCE(?, last_sync) WHERE id=?",
                (int(bool(synced)), last_sync, int(class_id)),
            )

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return rekey_row(
                cur, "classes", int(local_id), int(server_id), children=_CHILDREN, last_sync=last_sync or now_iso()
            )

    def _save(self, cur, school_class: SchoolClass) -> int:
        now = now_iso()
        existing = None
        if school_class.id is not None:
            cur.execute(
                "SELECT created_at, updated_at, synced, last_sync FROM classes WHERE id=?",
                (int(school_class.id),),
            )
            existing = fetchone(cur)
            if existing and school_class.synced and is_local_only(existing):
                relocate_row(cur, "classes", int(school_class.id), _CHILDREN)
                existing = None
        elif school_class.synced:
            raise ValidationError("A synced class must carry its server id")

        if existing:
            cur.execute(
                """
                UPDATE classes
                SET name=?, school_id=?, synced=?, created_at=?, updated_at=?, last_sync=COALESCE(?, last_sync)
                WHERE id=?
                """,
                (
                    school_class.name,
                    school_class.school_id,
                    int(school_class.synced),
                    existing.get("created_at") or school_class.created_at,
                    latest_iso(existing.get("updated_at"), school_class.updated_at or now),
                    school_class.last_sync,
                    int(school_class.id),
                ),
            )
            return int(school_class.id)

        cur.execute(
            """
            INSERT INTO classes(id, name, school_id, synced, created_at, updated_at, last_sync)
            VALUES(?,?,?,?,?,?,?)
            """,
            (
                school_class.id,
                school_class.name,
                school_class.school_id,
                int(school_class.synced),
                school_class.created_at or now,
                school_class.updated_at or now,
                school_class.last_sync,
            ),
        )
        return int(cur.lastrowid)
