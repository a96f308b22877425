from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class School:
    """Root of the school → class → student hierarchy."""

    name: str
    address: str
    id: Optional[int] = None
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_sync: Optional[str] = None
