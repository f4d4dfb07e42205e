"""
Month key helpers

Months are ``"YYYY-MM"`` strings; they sort chronologically as plain text.
"""

from __future__ import annotations

import re
from datetime import date, datetime

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})")


def month_key(value: date | datetime | str) -> str:
    """Normalize a date, datetime or ISO string to ``"YYYY-MM"``.

    Example:
        >>> month_key("2025-03-14")
        "2025-03"
        >>> month_key(date(2025, 3, 1))
        "2025-03"
    """
    if isinstance(value, (date, datetime)):
        return f"{value.year:04d}-{value.month:02d}"
    match = _MONTH_RE.match(str(value).strip())
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValueError(f"Not a month: {value!r}")
    return f"{match.group(1)}-{match.group(2)}"


def _add_month(month: str, delta: int) -> str:
    year, mon = (int(part) for part in month_key(month).split("-"))
    index = year * 12 + (mon - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def next_month(month: str) -> str:
    return _add_month(month, 1)


def previous_month(month: str) -> str:
    return _add_month(month, -1)


def month_range(start: str, end: str) -> list[str]:
    """Inclusive list of month keys from ``start`` to ``end``."""
    months: list[str] = []
    current = month_key(start)
    end = month_key(end)
    while current <= end:
        months.append(current)
        current = next_month(current)
    return months
