from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SchoolClass:
    """A class (turma). `school_id=None` means the class is orphaned."""

    name: str
    school_id: Optional[int] = None
    id: Optional[int] = None
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_sync: Optional[str] = None
