import os

SECRET_KEY = "test-secret"

API_URL = os.getenv("API_URL", "http://api.test")
REQUEST_TIMEOUT = 2.0

LOCAL_DB_PATH = ":memory:"
STORAGE_BACKEND = "memory"

CONNECTIVITY_PROBE_INTERVAL = 0.05
FORCE_OFFLINE = True
AUTO_SYNC_ON_RECONNECT = False

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"
LOG_FILE = None

AUTO_INIT_DB = False
