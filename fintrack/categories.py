"""Per-category expense sums."""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np
import pandas as pd

from .models import UNCATEGORIZED, Records
from .periods import Period, filter_by_period


def _grouped(expenses: Records, period: Optional[Period]) -> pd.Series:
    frame = filter_by_period(expenses, period)
    if frame.empty:
        return pd.Series(dtype=float)
    categories = frame['category'].where(frame['category'] != '', UNCATEGORIZED)
    return frame['amount'].groupby(categories).sum()


def breakdown(expenses: Records, period: Optional[Period] = None) -> Dict[str, float]:
    """Signed total per category.

    Categories whose refunds outweigh their charges keep their negative
    total here; only the pie view drops them.
    """
    return {str(category): float(total) for category, total in _grouped(expenses, period).items()}


def pie_breakdown(expenses: Records, period: Optional[Period] = None) -> pd.DataFrame:
    totals = _grouped(expenses, period)
    totals = totals[totals > 0].sort_values(ascending=False)
    frame = totals.rename_axis('category').reset_index(name='amount')
    return frame[['category', 'amount']]


def compare_categories(first: Dict[str, float], second: Dict[str, float]) -> pd.DataFrame:
    """Side-by-side category totals for two periods.

    ``change_percent`` is relative to the first period and ``NaN`` when
    that category had no spend in it.
    """
    categories = sorted(set(first) | set(second))
    frame = pd.DataFrame({
        'category': categories,
        'first': [float(first.get(name, 0.0)) for name in categories],
        'second': [float(second.get(name, 0.0)) for name in categories],
    }, columns=['category', 'first', 'second'])
    frame['difference'] = frame['second'] - frame['first']
    base = frame['first'].replace(0.0, np.nan)
    frame['change_percent'] = frame['difference'] / base.abs() * 100
    return frame.sort_values('second', ascending=False).reset_index(drop=True)
