from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..classes.model import SchoolClass
from ..classes.repository import ClassRepository
from ..schools.model import School
from ..schools.repository import SchoolRepository
from ..students.model import Student
from ..students.repository import StudentRepository


@dataclass(frozen=True)
class Snapshot:
    """Read projection of the whole local store, handed to the UI after a reload."""

    schools: tuple[School, ...] = field(default_factory=tuple)
    classes: tuple[SchoolClass, ...] = field(default_factory=tuple)
    students: tuple[Student, ...] = field(default_factory=tuple)
    attendance: tuple[AttendanceRecord, ...] = field(default_factory=tuple)


class Storage(Protocol):
    """Capability interface of the local store, implemented by each backend."""

    name: str
    schools: SchoolRepository
    classes: ClassRepository
    students: StudentRepository
    attendance: AttendanceRepository

    def clear(self) -> None:
        raise NotImplementedError

    def snapshot(self) -> Snapshot:
        raise NotImplementedError


def read_snapshot(storage: Storage) -> Snapshot:
    return Snapshot(
        schools=tuple(storage.schools.get_all()),
        classes=tuple(storage.classes.get_all()),
        students=tuple(storage.students.get_all()),
        attendance=tuple(storage.attendance.get_all()),
    )
