from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import SchoolClass


class ClassRepository(Protocol):
    def get_all(self, *, school_id: Optional[int] = None) -> Sequence[SchoolClass]:
        raise NotImplementedError

    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        raise NotImplementedError

    def save(self, school_class: SchoolClass) -> int:
        raise NotImplementedError

    def save_bulk(self, classes: Iterable[SchoolClass]) -> None:
        raise NotImplementedError

    def delete(self, class_id: int) -> None:
        """Delete a class; its students are kept with `class_id=None`."""

        raise NotImplementedError

    def update_sync_status(self, class_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        raise NotImplementedError

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        """Re-key a local row to its server id, carrying child references along."""

        raise NotImplementedError
