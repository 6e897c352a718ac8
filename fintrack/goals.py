"""Savings goal progress, contributions and the upcoming-expense forecast."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd

from .config import FORECAST_MONTHS
from .dates import start_of_day, today as local_today
from .formatting import format_currency
from .models import SavingsGoal, UpcomingExpense, coerce_amount, records_frame
from .periods import MonthPeriod, filter_by_period

FORECAST_COLUMNS = ['month', 'label', 'required', 'saved', 'deficit']


class InsufficientFundsError(ValueError):
    """Raised when a withdrawal asks for more than a goal holds."""

    def __init__(self, goal: SavingsGoal, amount: float):
        self.goal = goal
        self.amount = amount
        super().__init__(
            f"Cannot withdraw {format_currency(amount)} from '{goal.name}': "
            f"only {format_currency(goal.saved_amount)} saved"
        )


@dataclass(frozen=True)
class GoalProgress:
    goal: SavingsGoal
    percentage: float
    raw_percentage: float
    remaining: float
    completed: bool


def goal_progress(goal: SavingsGoal) -> GoalProgress:
    target = goal.target_amount if goal.target_amount else 1.0
    raw = goal.saved_amount / target * 100
    return GoalProgress(
        goal=goal,
        percentage=min(raw, 100.0),
        raw_percentage=raw,
        remaining=max(0.0, goal.target_amount - goal.saved_amount),
        completed=goal.saved_amount >= goal.target_amount,
    )


def _positive(amount) -> float:
    value = coerce_amount(amount)
    if value <= 0:
        raise ValueError("Amount must be greater than zero")
    return value


def contribute(goal: SavingsGoal, amount) -> SavingsGoal:
    """Add ``amount`` to the goal.

    Contributions are not limited by available funds; callers surface
    :func:`contribution_warning` instead.
    """
    return goal.with_saved(goal.saved_amount + _positive(amount))


def withdraw(goal: SavingsGoal, amount) -> SavingsGoal:
    value = _positive(amount)
    if value > goal.saved_amount:
        raise InsufficientFundsError(goal, value)
    return goal.with_saved(max(0.0, goal.saved_amount - value))


def contribution_warning(amount, available: float) -> Optional[str]:
    value = coerce_amount(amount)
    if value <= available:
        return None
    return (
        f"This contribution of {format_currency(value)} exceeds your available "
        f"funds of {format_currency(available)}."
    )


def available_funds(total_saved: float, goals: Iterable[SavingsGoal]) -> float:
    """Lifetime savings not yet allocated to any goal, never negative."""
    allocated = sum(goal.saved_amount for goal in goals)
    return max(0.0, float(total_saved) - allocated)


def forecast(upcoming: Iterable[UpcomingExpense], total_saved: float,
             today: Optional[pd.Timestamp] = None, months: int = FORECAST_MONTHS) -> pd.DataFrame:
    """Required spend per month for the next ``months`` months.

    Current savings are only credited against the first month; later
    months show their full requirement as the deficit.
    """
    anchor = start_of_day(today if today is not None else local_today())
    frame = records_frame(list(upcoming))
    month = MonthPeriod(anchor.year, anchor.month)
    rows: List[dict] = []
    for index in range(months):
        required = float(filter_by_period(frame, month)['amount'].sum())
        saved = max(0.0, float(total_saved)) if index == 0 else 0.0
        rows.append({
            'month': month.label,
            'label': month.start.strftime('%b %Y'),
            'required': required,
            'saved': saved,
            'deficit': max(0.0, required - saved),
        })
        month = month.next()
    return pd.DataFrame(rows, columns=FORECAST_COLUMNS)
