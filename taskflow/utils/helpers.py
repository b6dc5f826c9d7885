"""Shared utility functions for blueprints and services.

utcnow:          timezone-aware "now" used for every timestamp column
parse_datetime:  ISO string → aware UTC datetime (raises ValueError on bad input)
parse_bool:      JSON/query-string truthiness
"""
from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value):
    """Parse an ISO-format timestamp into an aware UTC datetime.

    Naive inputs are taken to be UTC.  A bare date becomes midnight UTC.
    Returns None for empty input; raises ValueError for garbage so callers
    can turn it into a 400.

    Supports:
    - YYYY-MM-DDTHH:MM[:SS[.ffffff]][+HH:MM | Z]
    - YYYY-MM-DD HH:MM:SS
    - YYYY-MM-DD
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        raw = str(value).strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_bool(value, default=False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "on")
