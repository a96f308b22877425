from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_sync.attendance_sync.storage.bootstrap import apply_schema, list_tables
from src.attendance_sync.attendance_sync.storage.connection import DatabaseConnection, SQLiteConfig


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    db_path = str(settings.LOCAL_DB_PATH)
    if db_path == ":memory:":
        raise SystemExit("LOCAL_DB_PATH is :memory:; nothing to initialize.")

    conn = DatabaseConnection.get_instance(SQLiteConfig(path=db_path))
    apply_schema(conn)
    tables = list_tables(conn)
    print(f"OK: Applied schema.sql -> {db_path} (tables={len(tables)})")


if __name__ == "__main__":
    main()
