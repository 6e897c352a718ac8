"""Calendar date helpers.

Every date in fintrack is a calendar date in the user's local calendar.
``YYYY-MM-DD`` strings are split into their components instead of going
through an epoch parser, so ``"2025-12-01"`` reads back as 2025/12/1 no
matter what the host timezone offset is.  Timestamps returned by these
helpers are always naive (no tzinfo).

A day ends at its last representable instant, 23:59:59.999999.  At the
day granularity every comparison here works with, that is the same
boundary as 23:59:59.999.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

_ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')

END_OF_DAY_OFFSET = pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)


def _to_local_naive(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is None:
        return ts
    local = ts.to_pydatetime().astimezone()
    return pd.Timestamp(local.replace(tzinfo=None))


def parse_local_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse ``value`` into a naive local timestamp, or ``None``.

    Accepts ``YYYY-MM-DD`` strings, other date/time strings, ``date``,
    ``datetime`` and pandas timestamps.  Anything that cannot be placed
    on the calendar returns ``None`` rather than raising.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return _to_local_naive(value)
    if isinstance(value, datetime):
        return _to_local_naive(pd.Timestamp(value))
    if isinstance(value, date):
        return pd.Timestamp(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        match = _ISO_DATE.match(text)
        if match:
            year, month, day = (int(part) for part in match.groups())
            try:
                return pd.Timestamp(year, month, day)
            except ValueError:
                return None
        parsed = pd.to_datetime(text, errors='coerce')
        if pd.isna(parsed):
            return None
        return _to_local_naive(parsed)
    return None


def to_iso_date(value: Any) -> Optional[str]:
    """Render a date-like value as ``YYYY-MM-DD`` for storage."""
    parsed = parse_local_date(value)
    if parsed is None:
        return None
    return parsed.date().isoformat()


def start_of_day(value: pd.Timestamp) -> pd.Timestamp:
    return value.normalize()


def end_of_day(value: pd.Timestamp) -> pd.Timestamp:
    return value.normalize() + END_OF_DAY_OFFSET


def month_start(year: int, month: int) -> pd.Timestamp:
    return pd.Timestamp(year, month, 1)


def month_end(year: int, month: int) -> pd.Timestamp:
    """Last instant of the given month."""
    return end_of_day(month_start(year, month) + pd.offsets.MonthEnd(0))


def add_months(value: pd.Timestamp, months: int) -> pd.Timestamp:
    """Shift by calendar months, clamping to the last day of shorter months."""
    return value + pd.DateOffset(months=months)


def today() -> pd.Timestamp:
    """Midnight of the current local day."""
    return pd.Timestamp.now().normalize()


def now() -> pd.Timestamp:
    return pd.Timestamp.now()


def parse_date_column(series: pd.Series) -> pd.Series:
    """Vectorised :func:`parse_local_date`; unparseable entries become ``NaT``."""
    parsed = series.map(parse_local_date)
    return pd.to_datetime(parsed, errors='coerce')
