from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_utc() -> datetime:
    """Current UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return now_utc().isoformat()


def today_iso() -> str:
    return date.today().strftime("%Y-%m-%d")


def latest_iso(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    """Return the later of two ISO-8601 timestamps, tolerating missing values."""
    if not current:
        return candidate
    if not candidate:
        return current
    try:
        a = datetime.fromisoformat(current.replace("Z", "+00:00"))
        b = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
        if (a.tzinfo is None) != (b.tzinfo is None):
            a = a.replace(tzinfo=a.tzinfo or timezone.utc)
            b = b.replace(tzinfo=b.tzinfo or timezone.utc)
        return candidate if b >= a else current
    except ValueError:
        return max(current, candidate)
