"""Billing period helpers.

A period is a calendar month written ``YYYY-MM``.  It is always passed
explicitly; nothing in the engine keeps a "current period".
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

_PERIOD_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})$")


def parse_period(value: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` string.

    Raises ``ValueError`` for anything else.
    """
    match = _PERIOD_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid period {value!r}: expected YYYY-MM")
    year, month = int(match["year"]), int(match["month"])
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid period {value!r}: month must be 01-12")
    return year, month


def format_period(year: int, month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {month}")
    return f"{year:04d}-{month:02d}"


def period_of(value: date | datetime) -> str:
    """Return the period a date (or datetime) falls in."""
    return format_period(value.year, value.month)


def period_bounds(period: str) -> tuple[date, date]:
    """Return the first and last calendar day of *period*."""
    year, month = parse_period(period)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def days_in_period(period: str) -> list[date]:
    first, last = period_bounds(period)
    return [date(first.year, first.month, d) for d in range(1, last.day + 1)]


def period_label(period: str) -> str:
    """Human label, e.g. ``"October, 2021"``."""
    year, month = parse_period(period)
    return f"{calendar.month_name[month]}, {year}"
