from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def get_all(self) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_student(self, student_id: int, *, date: Optional[str] = None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def get_for_student_and_date(self, student_id: int, date: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def save(self, record: AttendanceRecord) -> int:
        """Upsert keyed by `(student_id, date)`; an existing row keeps its id."""

        raise NotImplementedError

    def save_bulk(self, records: Iterable[AttendanceRecord]) -> None:
        raise NotImplementedError

    def delete(self, attendance_id: int) -> None:
        raise NotImplementedError

    def get_pending(self) -> Sequence[AttendanceRecord]:
        """Records with `synced=False`."""

        raise NotImplementedError

    def count_pending(self) -> int:
        raise NotImplementedError

    def update_sync_status(self, attendance_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        raise NotImplementedError

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        """Re-key a locally created record to the id the server assigned and mark it synced."""

        raise NotImplementedError
