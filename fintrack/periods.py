"""Period specifiers and the date filter every aggregation is built on."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

import pandas as pd

from .dates import end_of_day, month_end, month_start, parse_local_date, start_of_day, today as local_today
from .models import Records, records_frame


class Period:
    """Inclusive ``[start, end]`` window on the local calendar."""

    @property
    def start(self) -> pd.Timestamp:
        raise NotImplementedError

    @property
    def end(self) -> pd.Timestamp:
        raise NotImplementedError

    @property
    def label(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class MonthPeriod(Period):
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @property
    def start(self) -> pd.Timestamp:
        return month_start(self.year, self.month)

    @property
    def end(self) -> pd.Timestamp:
        return month_end(self.year, self.month)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> 'MonthPeriod':
        if self.month == 12:
            return MonthPeriod(self.year + 1, 1)
        return MonthPeriod(self.year, self.month + 1)

    def previous(self) -> 'MonthPeriod':
        if self.month == 1:
            return MonthPeriod(self.year - 1, 12)
        return MonthPeriod(self.year, self.month - 1)

    @classmethod
    def containing(cls, value) -> 'MonthPeriod':
        parsed = parse_local_date(value)
        if parsed is None:
            raise ValueError(f"Cannot place {value!r} on the calendar")
        return cls(parsed.year, parsed.month)

    @classmethod
    def current(cls) -> 'MonthPeriod':
        return cls.containing(local_today())


@dataclass(frozen=True)
class YearPeriod(Period):
    year: int

    @property
    def start(self) -> pd.Timestamp:
        return month_start(self.year, 1)

    @property
    def end(self) -> pd.Timestamp:
        return month_end(self.year, 12)

    @property
    def label(self) -> str:
        return f"{self.year:04d}"


@dataclass(frozen=True)
class DateRange(Period):
    """Day-granular range: both endpoint days are fully included."""

    first_day: pd.Timestamp
    last_day: pd.Timestamp

    def __post_init__(self):
        first = parse_local_date(self.first_day)
        last = parse_local_date(self.last_day)
        if first is None or last is None:
            raise ValueError("Date range needs a valid start and end date")
        if last < first:
            raise ValueError("Date range end cannot be before its start")
        object.__setattr__(self, 'first_day', start_of_day(first))
        object.__setattr__(self, 'last_day', start_of_day(last))

    @property
    def start(self) -> pd.Timestamp:
        return self.first_day

    @property
    def end(self) -> pd.Timestamp:
        return end_of_day(self.last_day)

    @property
    def label(self) -> str:
        first = self.first_day.date().isoformat()
        last = self.last_day.date().isoformat()
        return first if first == last else f"{first} to {last}"


_YEAR = re.compile(r'^\d{4}$')
_MONTH = re.compile(r'^(\d{4})-(\d{2})$')


def parse_period(value: Union[str, Period]) -> Period:
    """Build a period from a selector string.

    ``"2025"`` is a year, ``"2025-03"`` a month and ``"2025-03-14"`` a
    single day.  Two dates joined by ``".."`` give an inclusive range.
    """
    if isinstance(value, Period):
        return value
    text = str(value).strip()
    if _YEAR.match(text):
        return YearPeriod(int(text))
    month_match = _MONTH.match(text)
    if month_match:
        return MonthPeriod(int(month_match.group(1)), int(month_match.group(2)))
    if '..' in text:
        first, last = text.split('..', 1)
        return DateRange(first.strip(), last.strip())
    if parse_local_date(text) is not None:
        return DateRange(text, text)
    raise ValueError(f"Unrecognised period {value!r}")


def filter_by_period(records: Records, period: Optional[Period]) -> pd.DataFrame:
    """Rows of ``records`` dated inside ``period`` (inclusive).

    Rows whose date is missing or unparseable never match a period.
    ``period=None`` keeps every row, including undated ones.
    """
    frame = records_frame(records)
    if period is None:
        return frame
    mask = frame['date'].notna() & (frame['date'] >= period.start) & (frame['date'] <= period.end)
    return frame.loc[mask].reset_index(drop=True)


def available_periods(frames: Iterable[Records], granularity: str = 'months',
                      today: Optional[pd.Timestamp] = None) -> List[str]:
    """Selector labels covering the given records, most recent first.

    ``granularity`` is ``"years"``, ``"months"`` or ``"days"``.  Day
    granularity lists the last 30 days ending today regardless of data.
    """
    if granularity == 'days':
        anchor = start_of_day(today if today is not None else local_today())
        return [(anchor - pd.Timedelta(days=offset)).date().isoformat() for offset in range(30)]

    dates = [records_frame(records)['date'] for records in frames]
    dates = [series for series in dates if not series.empty]
    if not dates:
        return []
    combined = pd.concat(dates).dropna()
    if granularity == 'years':
        labels = combined.dt.strftime('%Y')
    elif granularity == 'months':
        labels = combined.dt.strftime('%Y-%m')
    else:
        raise ValueError(f"Unknown granularity {granularity!r}")
    return sorted(labels.unique().tolist(), reverse=True)
