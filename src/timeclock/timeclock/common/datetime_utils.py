from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from ..core.constants import DATE_KEY_FORMAT
from ..core.exceptions import ValidationError

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, DATE_KEY_FORMAT).date()


def require_date_key(value: Optional[str]) -> str:
    """Validate an employee-local calendar day key (YYYY-MM-DD).

    The key always comes from the caller; nothing here falls back to the
    server's notion of today.
    """
    key = (value or "").strip()
    if not _DATE_KEY_RE.match(key):
        raise ValidationError(f"Invalid date key {value!r} (expected YYYY-MM-DD)")
    try:
        parse_iso_date(key)
    except ValueError:
        raise ValidationError(f"Invalid date key {value!r} (not a calendar day)")
    return key


def previous_date_key(date_key: str) -> str:
    """Day before `date_key`, used to find overnight shifts."""
    return (parse_iso_date(require_date_key(date_key)) - timedelta(days=1)).strftime(DATE_KEY_FORMAT)


def shift_date_key(date_key: str, days: int) -> str:
    return (parse_iso_date(require_date_key(date_key)) + timedelta(days=days)).strftime(DATE_KEY_FORMAT)


def normalize_date_string(value: str) -> str:
    """Normalize to YYYY-MM-DD.

    Valid keys pass through untouched so no timezone conversion can move the
    day. ISO datetimes are cut to their calendar part; anything unparseable
    is returned as given.
    """
    trimmed = (value or "").strip()
    if _DATE_KEY_RE.match(trimmed):
        return trimmed
    try:
        return datetime.fromisoformat(trimmed.replace("Z", "+00:00")).strftime(DATE_KEY_FORMAT)
    except ValueError:
        return value


def now_utc() -> datetime:
    """Current instant (UTC, tz-aware).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_instant(value) -> Optional[datetime]:
    """Accept datetime or ISO-8601 string ('Z' suffix allowed); naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid timestamp {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
