from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class SQLiteConfig:
    path: str
    busy_timeout: float = 5.0


class DatabaseConnection:
    """Singleton-like SQLite connection factory.

    Note: We create short-lived connections per operation, so the same store
    can be used from the event loop and from a threaded web host.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: SQLiteConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: SQLiteConfig) -> "DatabaseConnection":
        if cls._instance is None or cls._instance.path != config.path:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    @property
    def path(self) -> str:
        return self._config.path

    def ensure_parent_dir(self) -> None:
        Path(self._config.path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._config.path, timeout=float(self._config.busy_timeout))
        conn.row_factory = sqlite3.Row
        return conn
