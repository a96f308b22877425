from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import Student


class StudentRepository(Protocol):
    def get_all(self, *, class_id: Optional[int] = None) -> Sequence[Student]:
        raise NotImplementedError

    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def save(self, student: Student) -> int:
        raise NotImplementedError

    def save_bulk(self, students: Iterable[Student]) -> None:
        raise NotImplementedError

    def delete(self, student_id: int) -> None:
        """Delete a student together with its attendance records."""

        raise NotImplementedError

    def update_sync_status(self, student_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        raise NotImplementedError

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        """Re-key a local row to its server id, carrying child references along."""

        raise NotImplementedError
