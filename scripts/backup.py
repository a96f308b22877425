"""Backup the local SQLite store.

Uses SQLite's online backup API, so the copy is consistent even while the
agent is writing.
"""

from __future__ import annotations

import importlib
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module


def backup(db_path: Path, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"{db_path.stem}_{ts}.db"

    src = sqlite3.connect(str(db_path))
    dst = sqlite3.connect(str(out_file))
    try:
        src.backup(dst)
    finally:
        dst.close()
        src.close()
    return out_file


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    db_path = Path(str(settings.LOCAL_DB_PATH)).expanduser()
    if not db_path.exists():
        raise SystemExit(f"Local database not found: {db_path}")

    out_file = backup(db_path, REPO_ROOT / "backups")
    print(f"OK: Backup created: {out_file}")


if __name__ == "__main__":
    main()
