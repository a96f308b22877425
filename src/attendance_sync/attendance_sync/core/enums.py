from __future__ import annotations

from enum import Enum


class EntityType(str, Enum):
    """Entity collections, valued by their resource name on the server."""

    SCHOOL = "escolas"
    CLASS = "turmas"
    STUDENT = "alunos"
    ATTENDANCE = "presencas"


class SyncState(str, Enum):
    IDLE = "IDLE"
    SYNCING = "SYNCING"


class ConnectivityEvent(str, Enum):
    """Transition events emitted by the connectivity monitor."""

    BECAME_ONLINE = "became-online"
    BECAME_OFFLINE = "became-offline"


class StorageBackend(str, Enum):
    SQLITE = "sqlite"
    MEMORY = "memory"
    AUTO = "auto"
