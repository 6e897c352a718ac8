"""Signed income / expense / saved totals.

Refunds are recorded as negative amounts of the same type, so every total
here is a plain signed sum; there is no separate refund path.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from typing import Dict, Optional

import pandas as pd

from .categories import breakdown, compare_categories
from .models import Records, records_frame
from .periods import MonthPeriod, Period, filter_by_period


@dataclass(frozen=True)
class Totals:
    total_income: float = 0.0
    total_expenses: float = 0.0
    total_saved: float = 0.0

    @classmethod
    def from_sums(cls, income: float, expenses: float) -> 'Totals':
        return cls(float(income), float(expenses), float(income) - float(expenses))

    def __sub__(self, other: 'Totals') -> 'Totals':
        return Totals(
            self.total_income - other.total_income,
            self.total_expenses - other.total_expenses,
            self.total_saved - other.total_saved,
        )


@dataclass(frozen=True)
class CarryforwardSummary:
    month: MonthPeriod
    month_income: float
    month_expenses: float
    month_saved: float
    previous_saved: float
    cumulative_saved: float


@dataclass(frozen=True)
class PeriodComparison:
    first: Totals
    second: Totals
    first_counts: Dict[str, int]
    second_counts: Dict[str, int]
    difference: Totals
    income_change: Optional[float]
    expenses_change: Optional[float]
    saved_change: Optional[float]
    categories: pd.DataFrame


def all_time_totals(incomes: Records, expenses: Records) -> Totals:
    """Unfiltered signed sums; undated records count too."""
    income = records_frame(incomes)['amount'].sum()
    spent = records_frame(expenses)['amount'].sum()
    return Totals.from_sums(income, spent)


def period_totals(incomes: Records, expenses: Records, period: Period) -> Totals:
    income = filter_by_period(incomes, period)['amount'].sum()
    spent = filter_by_period(expenses, period)['amount'].sum()
    return Totals.from_sums(income, spent)


def _through(records: Records, month: MonthPeriod) -> float:
    frame = records_frame(records)
    mask = frame['date'].notna() & (frame['date'] <= month.end)
    return float(frame.loc[mask, 'amount'].sum())


def cumulative_through(incomes: Records, expenses: Records, month: MonthPeriod) -> Totals:
    """Totals over every dated record up to the end of ``month``."""
    return Totals.from_sums(_through(incomes, month), _through(expenses, month))


def carryforward_summary(incomes: Records, expenses: Records, month: MonthPeriod) -> CarryforwardSummary:
    current = period_totals(incomes, expenses, month)
    previous = cumulative_through(incomes, expenses, month.previous())
    return CarryforwardSummary(
        month=month,
        month_income=current.total_income,
        month_expenses=current.total_expenses,
        month_saved=current.total_saved,
        previous_saved=previous.total_saved,
        cumulative_saved=previous.total_saved + current.total_saved,
    )


def _daily_running(records: Records, month: MonthPeriod, days: int) -> pd.Series:
    frame = filter_by_period(records, month)
    per_day = frame['amount'].groupby(frame['date'].dt.day).sum()
    return per_day.reindex(range(1, days + 1), fill_value=0.0).astype(float).cumsum()


def daily_cumulative(incomes: Records, expenses: Records, month: MonthPeriod) -> pd.DataFrame:
    """Running income and expense totals for each day of ``month``."""
    days = calendar.monthrange(month.year, month.month)[1]
    income = _daily_running(incomes, month, days)
    spent = _daily_running(expenses, month, days)
    return pd.DataFrame({
        'day': list(range(1, days + 1)),
        'date': pd.date_range(month.start, periods=days, freq='D'),
        'income': income.to_numpy(),
        'expenses': spent.to_numpy(),
    })


def _percent_change(first: float, second: float, absolute_base: bool = False) -> Optional[float]:
    if first == 0:
        return None
    base = abs(first) if absolute_base else first
    return (second - first) / base * 100


def compare_periods(incomes: Records, expenses: Records, first: Period, second: Period) -> PeriodComparison:
    """Totals, counts and changes between two periods.

    Changes are percentages of the first period.  The saved change uses
    the magnitude of the first period's savings so that going from a
    deficit to a smaller deficit reads as an improvement.
    """
    first_incomes = filter_by_period(incomes, first)
    first_expenses = filter_by_period(expenses, first)
    second_incomes = filter_by_period(incomes, second)
    second_expenses = filter_by_period(expenses, second)

    first_totals = Totals.from_sums(first_incomes['amount'].sum(), first_expenses['amount'].sum())
    second_totals = Totals.from_sums(second_incomes['amount'].sum(), second_expenses['amount'].sum())

    return PeriodComparison(
        first=first_totals,
        second=second_totals,
        first_counts={'incomes': len(first_incomes), 'expenses': len(first_expenses)},
        second_counts={'incomes': len(second_incomes), 'expenses': len(second_expenses)},
        difference=second_totals - first_totals,
        income_change=_percent_change(first_totals.total_income, second_totals.total_income),
        expenses_change=_percent_change(first_totals.total_expenses, second_totals.total_expenses),
        saved_change=_percent_change(first_totals.total_saved, second_totals.total_saved, absolute_base=True),
        categories=compare_categories(breakdown(first_expenses), breakdown(second_expenses)),
    )
