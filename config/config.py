import os
from pathlib import Path


def _flag(name: str, default: str) -> bool:
    return bool(int(os.environ.get(name, default)))


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or "attendance-sync-local"

    # Remote API
    API_URL = os.environ.get("API_URL", "http://localhost:3002")
    REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "10"))

    # Local store
    LOCAL_DB_PATH = os.environ.get("LOCAL_DB_PATH", str(Path.home() / ".attendance_sync" / "escola.db"))
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "auto")
    AUTO_INIT_DB = _flag("AUTO_INIT_DB", "1")

    # Connectivity and sync
    CONNECTIVITY_PROBE_INTERVAL = float(os.environ.get("CONNECTIVITY_PROBE_INTERVAL", "5"))
    FORCE_OFFLINE = _flag("FORCE_OFFLINE", "0")
    AUTO_SYNC_ON_RECONNECT = _flag("AUTO_SYNC_ON_RECONNECT", "1")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE") or None
