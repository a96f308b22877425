from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path

from ..core.enums import StorageBackend
from ..core.exceptions import StorageError, ValidationError
from .base import Storage
from .connection import DatabaseConnection, SQLiteConfig
from .memory import MemoryStorage
from .sqlite_storage import SQLiteStorage

logger = logging.getLogger(__name__)


def sqlite_available(db_path: str) -> bool:
    """Capability check: the embedded engine is usable and the file location is writable."""

    if db_path == ":memory:":
        return False
    try:
        sqlite3.connect(":memory:").close()
    except sqlite3.Error:
        return False

    parent = Path(db_path).expanduser().resolve().parent
    probe = parent
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return os.access(probe, os.W_OK)


def select_storage(*, backend: str = StorageBackend.AUTO.value, db_path: str, init_schema: bool = True) -> Storage:
    """Pick the storage variant once, at startup.

    `auto` prefers SQLite and falls back to memory when the file cannot be used.
    """

    try:
        choice = StorageBackend(str(backend).lower())
    except ValueError:
        raise ValidationError(f"Unknown storage backend: {backend!r}") from None

    if choice == StorageBackend.AUTO:
        choice = StorageBackend.SQLITE if sqlite_available(db_path) else StorageBackend.MEMORY

    if choice == StorageBackend.MEMORY:
        logger.warning("Using in-memory storage; local data will not survive a restart")
        return MemoryStorage()

    try:
        storage = SQLiteStorage(DatabaseConnection.get_instance(SQLiteConfig(path=db_path)), init_schema=init_schema)
    except OSError as exc:
        raise StorageError(f"Cannot prepare local database at {db_path}: {exc}") from exc
    logger.info("Using SQLite storage at %s", db_path)
    return storage
