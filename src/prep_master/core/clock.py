# src/prep_master/core/clock.py

"""
Time helpers.

All date/timestamp strings that are later compared lexically are produced here:
- calendar days:  YYYY-MM-DD (local date)
- logical clock:  YYYY-MM-DDTHH:MM:SS.mmmZ (UTC, millisecond precision)
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone


def now_ms() -> int:
    """Wall-clock epoch milliseconds."""
    return int(time.time() * 1000)


def local_today() -> str:
    """Return local date as YYYY-MM-DD string."""
    return date.today().isoformat()


def utc_now_iso() -> str:
    """Return current UTC time as canonical ISO-8601 string with milliseconds and 'Z'."""
    return _format_utc(datetime.now(timezone.utc))


def _format_utc(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def normalize_iso_timestamp(raw: str | None) -> str:
    """
    Rewrite any ISO-8601 timestamp into the canonical UTC form.

    Empty input stays empty (it sorts before every real timestamp).
    Raises ValueError on non-strings (epoch numbers included) and on strings
    that are not ISO-8601.
    """
    if raw is None or raw == "":
        return ""
    if not isinstance(raw, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(raw).__name__}")
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return _format_utc(dt)


def ensure_iso_date(raw: str) -> str:
    """Validate a YYYY-MM-DD calendar day; returns it unchanged."""
    try:
        parsed = date.fromisoformat(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Expected YYYY-MM-DD date, got {raw!r}") from None
    if parsed.isoformat() != raw:
        raise ValueError(f"Expected YYYY-MM-DD date, got {raw!r}")
    return raw


def add_days(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=int(days))).isoformat()


def fmt_hms(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02}:{m:02}:{s:02}"
