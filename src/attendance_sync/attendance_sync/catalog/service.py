from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..classes.model import SchoolClass
from ..common.datetime_utils import now_iso
from ..common.validators import require_iso_date, require_positive_id
from ..connectivity.monitor import ConnectivityMonitor
from ..core.enums import EntityType
from ..core.exceptions import NetworkError, RequestCancelled
from ..remote.api import AttendanceApi
from ..remote.client import CancelToken
from ..schools.model import School
from ..storage.base import Storage
from ..students.model import Student

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"


@dataclass(frozen=True)
class CatalogResult:
    items: tuple = field(default_factory=tuple)
    source: str = SOURCE_LOCAL
    message: Optional[str] = None


class CatalogService:
    """Remote-then-local listings for the selection screens.

    Online, the server's rows are cached in the store before being returned.
    Offline, or when the server fails or has nothing, the local rows are
    returned with a non-fatal message. Storage errors propagate.
    """

    def __init__(self, storage: Storage, api: AttendanceApi, monitor: Optional[ConnectivityMonitor] = None):
        self._storage = storage
        self._api = api
        self._monitor = monitor

    def _online(self) -> bool:
        return self._monitor is not None and self._monitor.is_online

    async def list_schools(self, *, cancel_token: Optional[CancelToken] = None) -> CatalogResult:
        return await self._list(
            EntityType.SCHOOL,
            partial(self._api.list_all, EntityType.SCHOOL, cancel_token=cancel_token),
            self._storage.schools.get_all,
            self._storage.schools,
        )

    async def list_classes(
        self, school_id: Optional[int] = None, *, cancel_token: Optional[CancelToken] = None
    ) -> CatalogResult:
        if school_id is None:
            fetch = partial(self._api.list_all, EntityType.CLASS, cancel_token=cancel_token)
        else:
            school_id = require_positive_id(school_id, "school_id")
            fetch = partial(self._api.list_classes_for_school, school_id, cancel_token=cancel_token)
        return await self._list(
            EntityType.CLASS,
            fetch,
            lambda: self._storage.classes.get_all(school_id=school_id),
            self._storage.classes,
        )

    async def list_students(
        self, class_id: Optional[int] = None, *, cancel_token: Optional[CancelToken] = None
    ) -> CatalogResult:
        if class_id is None:
            fetch = partial(self._api.list_all, EntityType.STUDENT, cancel_token=cancel_token)
        else:
            class_id = require_positive_id(class_id, "class_id")
            fetch = partial(self._api.list_students_for_class, class_id, cancel_token=cancel_token)
        return await self._list(
            EntityType.STUDENT,
            fetch,
            lambda: self._storage.students.get_all(class_id=class_id),
            self._storage.students,
        )

    async def list_attendance(
        self,
        student_id: Optional[int] = None,
        date: Optional[str] = None,
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> CatalogResult:
        if date is not None:
            date = require_iso_date(date)

        if student_id is None:
            fetch = partial(self._api.list_all, EntityType.ATTENDANCE, cancel_token=cancel_token)

            def read_local() -> Sequence[AttendanceRecord]:
                rows = self._storage.attendance.get_all()
                return [r for r in rows if date is None or r.date == date]

        else:
            student_id = require_positive_id(student_id, "student_id")
            fetch = partial(self._api.list_attendance_for_student, student_id, date=date, cancel_token=cancel_token)

            def read_local() -> Sequence[AttendanceRecord]:
                return self._storage.attendance.get_for_student(student_id, date=date)

        return await self._list(EntityType.ATTENDANCE, fetch, read_local, self._storage.attendance)

    async def _list(
        self,
        entity: EntityType,
        fetch: Callable[[], Awaitable[list]],
        read_local: Callable[[], Sequence[Any]],
        repo: Any,
    ) -> CatalogResult:
        if not self._online():
            return CatalogResult(items=tuple(read_local()), source=SOURCE_LOCAL, message="Offline: showing local data")

        try:
            remote = [r for r in await fetch() if r.id is not None]
        except (NetworkError, RequestCancelled) as exc:
            logger.warning("Fetching %s failed, using local data: %s", entity.value, exc)
            return CatalogResult(
                items=tuple(read_local()),
                source=SOURCE_LOCAL,
                message=f"Could not reach the server ({exc}); showing local data",
            )

        if not remote:
            return CatalogResult(
                items=tuple(read_local()),
                source=SOURCE_LOCAL,
                message=f"The server returned no {entity.value}; showing local data",
            )

        repo.save_bulk(self._cacheable(entity, remote, repo))
        return CatalogResult(items=tuple(read_local()), source=SOURCE_REMOTE)

    @staticmethod
    def _cacheable(entity: EntityType, remote: Sequence[Any], repo: Any) -> list:
        """Server rows stamped as synced, minus those that would overwrite a pending local edit."""

        stamp = now_iso()
        keep = []
        for record in remote:
            if entity == EntityType.ATTENDANCE:
                local = repo.get_for_student_and_date(record.student_id, record.date)
            else:
                local = repo.get_by_id(record.id)
            if local is not None and not local.synced:
                continue
            keep.append(_as_cached(record, stamp))
        return keep


def _as_cached(record: Any, stamp: str) -> Any:
    if isinstance(record, Student):
        return replace(record, synced=True, last_sync=stamp, attendance=())
    if isinstance(record, (School, SchoolClass, AttendanceRecord)):
        return replace(record, synced=True, last_sync=stamp)
    return record
