from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import School


class SchoolRepository(Protocol):
    def get_all(self) -> Sequence[School]:
        raise NotImplementedError

    def get_by_id(self, school_id: int) -> Optional[School]:
        raise NotImplementedError

    def save(self, school: School) -> int:
        raise NotImplementedError

    def save_bulk(self, schools: Iterable[School]) -> None:
        raise NotImplementedError

    def delete(self, school_id: int) -> None:
        """Delete a school; its classes are kept with `school_id=None`."""

        raise NotImplementedError

    def update_sync_status(self, school_id: int, synced: bool, *, last_sync: Optional[str] = None) -> None:
        raise NotImplementedError

    def assign_server_id(self, local_id: int, server_id: int, *, last_sync: Optional[str] = None) -> int:
        """Re-key a local row to its server id, carrying child references along."""

        raise NotImplementedError
