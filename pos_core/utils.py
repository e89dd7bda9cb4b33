from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

DateLike = Union[str, date, datetime]


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def parse_iso(value: DateLike) -> datetime:
    """Parse an ISO date or date-time into a ``datetime``.

    Plain dates become midnight. A trailing ``Z`` is accepted as UTC.
    Raises ``ValueError`` for anything else.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = str(value).strip()
    if not s:
        raise ValueError("Empty date string.")
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def normalize_iso(value: DateLike) -> str:
    return parse_iso(value).isoformat()


def is_date_only(value: DateLike) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return len(str(value).strip()) == 10


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None
