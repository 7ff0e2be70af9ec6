"""Date helpers shared by forms, list rendering and PDF export.

All helpers accept ``datetime`` | ``date`` | ISO string | epoch milliseconds and
degrade to ``None`` / ``""`` on malformed input instead of raising.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Optional

_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def to_date(value: Any) -> Optional[date]:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    dt = to_datetime(value)
    return dt.date() if dt else None


def format_ymd(value: Any) -> str:
    """yyyy-mm-dd for date inputs; blank for anything unparseable."""
    if isinstance(value, str) and _YMD.match(value):
        return value
    d = to_date(value)
    return d.isoformat() if d else ""


def format_ts(value: Any) -> str:
    dt = to_datetime(value)
    if not dt:
        return ""
    return dt.strftime("%Y-%m-%d %H:%M")


def format_date(value: Any) -> str:
    d = to_date(value)
    if not d:
        return ""
    return d.strftime("%b %d, %Y")
