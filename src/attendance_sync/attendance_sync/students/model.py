from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..attendance.model import AttendanceRecord


@dataclass(frozen=True)
class Student:
    """A student.

    `attendance` is a denormalized cache for fast UI lookups; the attendance
    collection in the store stays the source of truth.
    """

    name: str
    class_id: Optional[int] = None
    id: Optional[int] = None
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_sync: Optional[str] = None
    attendance: tuple[AttendanceRecord, ...] = ()
