import os

from .config import Config

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

API_URL = Config.API_URL
REQUEST_TIMEOUT = Config.REQUEST_TIMEOUT

LOCAL_DB_PATH = Config.LOCAL_DB_PATH
STORAGE_BACKEND = Config.STORAGE_BACKEND

CONNECTIVITY_PROBE_INTERVAL = Config.CONNECTIVITY_PROBE_INTERVAL
FORCE_OFFLINE = Config.FORCE_OFFLINE
AUTO_SYNC_ON_RECONNECT = Config.AUTO_SYNC_ON_RECONNECT

DEBUG = False
LOG_LEVEL = Config.LOG_LEVEL
LOG_FILE = Config.LOG_FILE

AUTO_INIT_DB = Config.AUTO_INIT_DB
