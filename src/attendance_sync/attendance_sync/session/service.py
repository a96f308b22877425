from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..attendance.model import AttendanceRecord
from ..attendance.recorder import AttendanceRecorder
from ..catalog.service import CatalogService
from ..classes.model import SchoolClass
from ..common.datetime_utils import today_iso
from ..common.validators import require_iso_date
from ..core.exceptions import NotInitialized, ValidationError
from ..schools.model import School
from ..storage.base import Storage
from ..students.model import Student
from ..sync.service import SyncResult, SyncService


@dataclass(frozen=True)
class SyncStatus:
    loading: bool
    last_sync: Optional[str]
    error: Optional[str]


class AttendanceSession:
    """What one operator is looking at: selected school, class and date.

    Projections (`schools`, `classes`, `students`, `attendance`) are plain
    tuples re-read from the store after every change, so they never drift
    from what is persisted.
    """

    def __init__(
        self,
        storage: Optional[Storage],
        catalog: CatalogService,
        recorder: AttendanceRecorder,
        sync: SyncService,
    ):
        self._storage = storage
        self._catalog = catalog
        self._recorder = recorder
        self._sync = sync

        self.selected_school: Optional[School] = None
        self.selected_class: Optional[SchoolClass] = None
        self.selected_date: str = today_iso()

        self.schools: tuple[School, ...] = ()
        self.classes: tuple[SchoolClass, ...] = ()
        self.students: tuple[Student, ...] = ()
        self.attendance: tuple[AttendanceRecord, ...] = ()
        self.message: Optional[str] = None

    def _require_storage(self) -> Storage:
        if self._storage is None:
            raise NotInitialized("Local store is not ready")
        return self._storage

    async def load_schools(self) -> tuple[School, ...]:
        self._require_storage()
        result = await self._catalog.list_schools()
        self.schools = tuple(result.items)
        self.message = result.message
        return self.schools

    async def select_school(self, school_id: int) -> tuple[SchoolClass, ...]:
        school = self._require_storage().schools.get_by_id(int(school_id))
        if school is None:
            raise ValidationError(f"School {school_id} does not exist")

        self.selected_school = school
        self.selected_class = None
        self.students = ()
        self.attendance = ()

        result = await self._catalog.list_classes(school.id)
        self.classes = tuple(result.items)
        self.message = result.message
        return self.classes

    async def select_class(self, class_id: int) -> tuple[Student, ...]:
        school_class = self._require_storage().classes.get_by_id(int(class_id))
        if school_class is None:
            raise ValidationError(f"Class {class_id} does not exist")

        self.selected_class = school_class
        result = await self._catalog.list_students(school_class.id)
        self.students = tuple(result.items)
        self.message = result.message
        self._refresh_attendance()
        return self.students

    def change_date(self, date: str) -> str:
        self.selected_date = require_iso_date(date)
        self._refresh_attendance()
        return self.selected_date

    async def record(self, student_id: int, present: bool, observation: Optional[str] = None) -> bool:
        self._require_storage()
        ok = await self._recorder.record_attendance(
            student_id,
            present,
            observation,
            date=self.selected_date,
        )
        self._refresh_attendance()
        return ok

    async def sync(self) -> SyncResult:
        result = await self._sync.sync_all()
        if result.snapshot is not None:
            self.apply_snapshot(result)
        self.message = result.message
        return result

    def apply_snapshot(self, result: SyncResult) -> None:
        snap = result.snapshot
        if self.selected_school is not None:
            self.selected_school = next((s for s in snap.schools if s.id == self.selected_school.id), None)
        if self.selected_class is not None:
            self.selected_class = next((c for c in snap.classes if c.id == self.selected_class.id), None)

        self.schools = snap.schools
        self.classes = tuple(c for c in snap.classes if self._in_selected_school(c))
        self.students = tuple(s for s in snap.students if self._in_selected_class(s))
        self._refresh_attendance(snap.attendance)

    @property
    def sync_status(self) -> SyncStatus:
        return SyncStatus(
            loading=self._sync.is_syncing,
            last_sync=self._sync.last_sync,
            error=self._sync.last_error,
        )

    def pending_count(self) -> int:
        self._require_storage()
        return self._recorder.pending_count()

    def _in_selected_school(self, school_class: SchoolClass) -> bool:
        return self.selected_school is None or school_class.school_id == self.selected_school.id

    def _in_selected_class(self, student: Student) -> bool:
        return self.selected_class is not None and student.class_id == self.selected_class.id

    def _refresh_attendance(self, source: Optional[tuple[AttendanceRecord, ...]] = None) -> None:
        if not self.students:
            self.attendance = ()
            return

        if source is None:
            source = tuple(self._require_storage().attendance.get_all())
        ids = {s.id for s in self.students}
        self.attendance = tuple(r for r in source if r.student_id in ids and r.date == self.selected_date)
