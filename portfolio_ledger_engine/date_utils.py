"""Calendar helpers for threshold rules.

All thresholds are evaluated on calendar dates; time-of-day is discarded.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd


def to_date(value: Any, *, field: str = "date") -> date:
    """Normalize ``date``/``datetime``/ISO string/``pd.Timestamp`` to a ``date``."""
    if value is None:
        raise ValueError(f"{field}: missing date")
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            raise ValueError(f"{field}: missing date")
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError(f"{field}: missing date")
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            try:
                return pd.Timestamp(text).date()
            except (ValueError, TypeError) as exc:
                raise ValueError(f"{field}: cannot parse {value!r} as a date") from exc
    raise ValueError(f"{field}: unsupported date value {value!r}")


def add_years(value: date, years: int) -> date:
    """Same month/day ``years`` later; Feb 29 clamps to Feb 28 in non-leap years."""
    return (pd.Timestamp(value) + pd.DateOffset(years=years)).date()


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end - start).days


def is_strictly_after(value: date, threshold: date) -> bool:
    """True only for dates after ``threshold``; the threshold date itself does not qualify."""
    return value > threshold


def start_of_year(year: int) -> date:
    return date(year, 1, 1)


def end_of_year(year: int) -> date:
    return date(year, 12, 31)


def date_range(start: date, end: date) -> list[date]:
    """Inclusive list of calendar days."""
    if end < start:
        return []
    return [d.date() for d in pd.date_range(start, end, freq="D")]
