import os

from .config import Config

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

API_URL = Config.API_URL
REQUEST_TIMEOUT = Config.REQUEST_TIMEOUT

LOCAL_DB_PATH = os.getenv("LOCAL_DB_PATH", "instance/escola.db")
STORAGE_BACKEND = Config.STORAGE_BACKEND

CONNECTIVITY_PROBE_INTERVAL = Config.CONNECTIVITY_PROBE_INTERVAL
FORCE_OFFLINE = Config.FORCE_OFFLINE
AUTO_SYNC_ON_RECONNECT = Config.AUTO_SYNC_ON_RECONNECT

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_FILE = os.getenv("LOG_FILE", "logs/attendance_sync.log")

# Applies schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
