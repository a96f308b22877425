from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .connection import DatabaseConnection
from .sqlite_base import db_cursor

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Columns added after the first release; older local files get them on startup.
UPGRADE_COLUMNS = {
    "attendance_records": {"observation": "TEXT", "last_sync": "TEXT"},
    "schools": {"last_sync": "TEXT"},
    "classes": {"last_sync": "TEXT"},
    "students": {"last_sync": "TEXT"},
}


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes, skips '--' comments).
    buf: list[str] = []
    in_single = False
    in_double = False
    in_comment = False

    for ch in sql:
        if in_comment:
            if ch == "\n":
                in_comment = False
                buf.append(ch)
            continue

        if ch == "-" and not in_single and not in_double and buf and buf[-1] == "-":
            buf.pop()
            in_comment = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def apply_schema(conn_factory: DatabaseConnection, *, schema_path: Optional[str | Path] = None) -> None:
    conn_factory.ensure_parent_dir()
    sql = Path(schema_path or SCHEMA_PATH).read_text(encoding="utf-8")

    with db_cursor(conn_factory) as (_, cur):
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)

    upgrade_columns(conn_factory)


def upgrade_columns(conn_factory: DatabaseConnection) -> list[str]:
    """Add columns missing from databases created by older releases."""

    added: list[str] = []
    with db_cursor(conn_factory) as (_, cur):
        for table, columns in UPGRADE_COLUMNS.items():
            cur.execute(f"PRAGMA table_info({table})")
            existing = {row["name"] for row in cur.fetchall()}
            for column, ddl in columns.items():
                if column not in existing:
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
                    added.append(f"{table}.{column}")

    if added:
        logger.info("Upgraded local schema: added %s", ", ".join(added))
    return added


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    with db_cursor(conn_factory) as (_, cur):
        cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name")
        return [row["name"] for row in cur.fetchall()]
