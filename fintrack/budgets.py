"""Budget windows, spend tracking and severity tiers.

A budget accumulates every matching expense from its effective start to
its effective end.  Spend is cumulative since inception: the month picked
in the dashboard only decides *which* budgets are shown, never how much of
their spend counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .dates import end_of_day, now as local_now
from .models import Budget, Records, records_frame
from .periods import MonthPeriod

logger = logging.getLogger(__name__)

SEVERITY_OK = 'ok'
SEVERITY_WARN = 'warn'
SEVERITY_DANGER = 'danger'

WARN_THRESHOLD = 50.0
DANGER_THRESHOLD = 90.0

PIE_LABEL_LENGTH = 25

PROGRESS_COLUMNS = [
    'budget_id', 'category', 'amount', 'start', 'end', 'spent', 'percentage',
    'remaining', 'over_by', 'refund_excess', 'expense_count', 'severity',
]


@dataclass(frozen=True)
class BudgetProgress:
    budget: Budget
    start: Optional[pd.Timestamp]
    end: pd.Timestamp
    spent: float
    percentage: float
    remaining: float
    raw_remaining: float
    over_by: float
    refund_excess: float
    expense_count: int
    severity: str

    @property
    def is_over(self) -> bool:
        return self.over_by > 0

    @property
    def bar_width(self) -> float:
        """Progress bar fill, capped at 100 while ``percentage`` is not."""
        return min(self.percentage, 100.0)


def severity_for(percentage: float) -> str:
    if percentage > DANGER_THRESHOLD:
        return SEVERITY_DANGER
    if percentage > WARN_THRESHOLD:
        return SEVERITY_WARN
    return SEVERITY_OK


def _divisor(amount: float) -> float:
    # A zero limit would divide by zero; treat it as one currency unit.
    return amount if amount else 1.0


def effective_window(budget: Budget, now: Optional[pd.Timestamp] = None) -> Tuple[Optional[pd.Timestamp], pd.Timestamp]:
    """Resolve ``(start, end)`` for ``budget``; ``start`` may be ``None`` (unbounded)."""
    if budget.expiration_date is not None:
        end = end_of_day(budget.expiration_date)
    else:
        end = end_of_day(now if now is not None else local_now())
    return budget.effective_start, end


def budget_expenses(budget: Budget, expenses: Records, now: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """Expenses counting against ``budget``, most recent first.

    Categories are compared as exact strings.
    """
    start, end = effective_window(budget, now)
    frame = records_frame(expenses)
    mask = (frame['category'] == budget.category) & frame['date'].notna() & (frame['date'] <= end)
    if start is not None:
        mask &= frame['date'] >= start
    matched = frame.loc[mask]
    return matched.sort_values('date', ascending=False, kind='stable').reset_index(drop=True)


def budget_progress(budget: Budget, expenses: Records, now: Optional[pd.Timestamp] = None) -> BudgetProgress:
    start, end = effective_window(budget, now)
    matched = budget_expenses(budget, expenses, now)
    spent = float(matched['amount'].sum())
    amount = float(budget.amount)

    percentage = spent / _divisor(amount) * 100 if spent > 0 else 0.0
    raw_remaining = amount - spent
    return BudgetProgress(
        budget=budget,
        start=start,
        end=end,
        spent=spent,
        percentage=percentage,
        remaining=amount - max(spent, 0.0),
        raw_remaining=raw_remaining,
        over_by=max(0.0, spent - amount),
        refund_excess=max(0.0, -spent),
        expense_count=len(matched),
        severity=severity_for(percentage),
    )


def is_visible_for_month(budget: Budget, month: MonthPeriod) -> bool:
    """Whether the budget's window overlaps ``month`` at all."""
    start = budget.effective_start
    if start is not None and start > month.end:
        return False
    if budget.expiration_date is not None and budget.expiration_date < month.start:
        return False
    return True


def budgets_for_month(budgets: Iterable[Budget], expenses: Records, month: MonthPeriod,
                      now: Optional[pd.Timestamp] = None) -> List[BudgetProgress]:
    frame = records_frame(expenses)
    visible = [budget for budget in budgets if is_visible_for_month(budget, month)]
    logger.debug("%d budgets visible for %s", len(visible), month.label)
    return [budget_progress(budget, frame, now) for budget in visible]


def progress_frame(progress_rows: Iterable[BudgetProgress]) -> pd.DataFrame:
    """Tabular view of budget progress rows for charts and tables."""
    rows = [
        {
            'budget_id': row.budget.id,
            'category': row.budget.category,
            'amount': row.budget.amount,
            'start': row.start,
            'end': row.end,
            'spent': row.spent,
            'percentage': row.percentage,
            'remaining': row.remaining,
            'over_by': row.over_by,
            'refund_excess': row.refund_excess,
            'expense_count': row.expense_count,
        }
        for row in progress_rows
    ]
    frame = pd.DataFrame(rows, columns=PROGRESS_COLUMNS[:-1])
    percentage = frame['percentage'].astype(float)
    frame['severity'] = np.select(
        [percentage > DANGER_THRESHOLD, percentage > WARN_THRESHOLD],
        [SEVERITY_DANGER, SEVERITY_WARN],
        default=SEVERITY_OK,
    )
    return frame


def average_progress(progress_rows: Iterable[BudgetProgress]) -> float:
    """Mean bar fill across budgets (each capped at 100%), 0 when empty."""
    widths = [row.bar_width for row in progress_rows]
    if not widths:
        return 0.0
    return float(np.mean(widths))


def budget_expense_pie(expenses: Records) -> pd.DataFrame:
    """Positive expenses grouped by label for a budget drill-down pie.

    Refunds are left out.  ``name`` is shortened to 25 characters for the
    legend while ``full_name`` keeps the original label.
    """
    frame = records_frame(expenses)
    frame = frame[frame['amount'] > 0]
    if frame.empty:
        return pd.DataFrame(columns=['name', 'full_name', 'amount'])
    grouped = frame.groupby('label', sort=False)['amount'].sum().sort_values(ascending=False)
    full_names = grouped.index.astype(str)
    names = [
        f"{label[:PIE_LABEL_LENGTH]}..." if len(label) > PIE_LABEL_LENGTH else label
        for label in full_names
    ]
    return pd.DataFrame({'name': names, 'full_name': list(full_names), 'amount': grouped.to_numpy()})
