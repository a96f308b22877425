"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from .enums import EntityType

# Parents before children, matching the foreign-key direction.
SYNC_ORDER = (
    EntityType.SCHOOL,
    EntityType.CLASS,
    EntityType.STUDENT,
    EntityType.ATTENDANCE,
)

DEFAULT_API_URL = "http://localhost:3002"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_PROBE_INTERVAL = 5.0
DEFAULT_PROBE_TIMEOUT = 2.0
DEFAULT_DB_FILENAME = "escola.db"
