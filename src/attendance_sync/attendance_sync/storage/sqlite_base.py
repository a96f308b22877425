from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.exceptions import StorageError, ValidationError
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection):
    """Yield `(conn, cursor)`; commit on success, roll back everything on error.

    SQLite and OS errors surface as `StorageError`, domain errors pass through.
    """

    try:
        conn = conn_factory.connect()
    except (sqlite3.Error, OSError) as exc:
        raise StorageError(f"Cannot open local database: {exc}") from exc
    try:
        cur = conn.cursor()
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except (sqlite3.Error, OSError) as exc:
        conn.rollback()
        raise StorageError(f"Local database error: {exc}") from exc
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return dict(row) if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return [dict(r) for r in rows or []]


def as_bool(value: Any) -> bool:
    """Normalize SQLite booleans (stored as 0/1, sometimes as text)."""

    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "synced"}
    return bool(value)


def as_optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def is_local_only(row: Dict[str, Any]) -> bool:
    """Created here and never confirmed by the server."""

    return not as_bool(row.get("synced")) and not row.get("last_sync")


def relocate_row(cur, table: str, row_id: int, children: Sequence[Tuple[str, str]] = ()) -> int:
    """Move a row to a fresh id and point `(child_table, fk)` references at it."""

    cur.execute(f"SELECT COALESCE(MAX(id), 0) + 1 AS next_id FROM {table}")
    new_id = int(fetchone(cur)["next_id"])
    cur.execute(f"UPDATE {table} SET id=? WHERE id=?", (new_id, row_id))
    _repoint(cur, children, row_id, new_id)
    return new_id


def rekey_row(
    cur,
    table: str,
    local_id: int,
    server_id: int,
    *,
    children: Sequence[Tuple[str, str]] = (),
    last_sync: str,
) -> int:
    """Give a local row the id the server assigned to it and mark it synced.

    A local-only row already holding `server_id` is relocated; a synced one is
    an older copy of the same server record and is replaced.
    """

    cur.execute(f"SELECT id FROM {table} WHERE id=?", (local_id,))
    if not fetchone(cur):
        raise ValidationError(f"{table} row {local_id} does not exist")

    if server_id != local_id:
        cur.execute(f"SELECT id, synced, last_sync FROM {table} WHERE id=?", (server_id,))
        occupant = fetchone(cur)
        if occupant and is_local_only(occupant):
            relocate_row(cur, table, server_id, children)
        elif occupant:
            cur.execute(f"DELETE FROM {table} WHERE id=?", (server_id,))
        cur.execute(f"UPDATE {table} SET id=? WHERE id=?", (server_id, local_id))
        _repoint(cur, children, local_id, server_id)

    cur.execute(f"UPDATE {table} SET synced=1, last_sync=? WHERE id=?", (last_sync, server_id))
    return server_id


def _repoint(cur, children: Sequence[Tuple[str, str]], old_id: int, new_id: int) -> None:
    for child_table, fk in children:
        cur.execute(f"UPDATE {child_table} SET {fk}=? WHERE {fk}=?", (new_id, old_id))
