from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's present/absent mark for one calendar date.

    `(student_id, date)` is unique in the local store.
    """

    student_id: int
    date: str
    present: bool
    observation: Optional[str] = None
    id: Optional[int] = None
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_sync: Optional[str] = None

    @property
    def key(self) -> tuple[int, str]:
        return (self.student_id, self.date)
