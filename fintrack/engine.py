"""Assemble every derived dashboard view from one fetch of the user's records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from . import budgets as budget_calc
from . import goals as goal_calc
from .categories import breakdown, pie_breakdown
from .dates import now as local_now, start_of_day
from .models import Budget, Expense, Income, RecurringPayment, SavingsGoal, UpcomingExpense
from .periods import MonthPeriod
from .recurring import upcoming_schedule
from .session import SessionManager
from .totals import CarryforwardSummary, Totals, all_time_totals, carryforward_summary, daily_cumulative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordSet:
    incomes: List[Income] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    budgets: List[Budget] = field(default_factory=list)
    goals: List[SavingsGoal] = field(default_factory=list)
    upcoming: List[UpcomingExpense] = field(default_factory=list)
    recurring: List[RecurringPayment] = field(default_factory=list)


def fetch_records(store, user_id: Optional[str]) -> RecordSet:
    """Load everything the dashboard needs; an anonymous user gets nothing."""
    if user_id is None:
        return RecordSet()
    return RecordSet(
        incomes=store.fetch_incomes(user_id),
        expenses=store.fetch_expenses(user_id),
        budgets=store.fetch_budgets(user_id),
        goals=store.fetch_savings_goals(user_id),
        upcoming=store.fetch_upcoming_expenses(user_id),
        recurring=store.fetch_recurring_payments(user_id),
    )


@dataclass(frozen=True)
class DashboardSnapshot:
    authenticated: bool
    user_id: Optional[str]
    month: MonthPeriod
    generated_at: pd.Timestamp
    records: RecordSet
    totals: Totals
    carryforward: CarryforwardSummary
    daily: pd.DataFrame
    category_totals: Dict[str, float]
    category_pie: pd.DataFrame
    budgets: List[budget_calc.BudgetProgress]
    average_budget_progress: float
    goals: List[goal_calc.GoalProgress]
    available_funds: float
    forecast: pd.DataFrame
    recurring: pd.DataFrame


def compute_snapshot(records: RecordSet, month: MonthPeriod, now: pd.Timestamp,
                     user_id: Optional[str] = None) -> DashboardSnapshot:
    """Pure part of :func:`build_snapshot`: records in, derived views out."""
    totals = all_time_totals(records.incomes, records.expenses)
    progress = budget_calc.budgets_for_month(records.budgets, records.expenses, month, now)
    return DashboardSnapshot(
        authenticated=user_id is not None,
        user_id=user_id,
        month=month,
        generated_at=now,
        records=records,
        totals=totals,
        carryforward=carryforward_summary(records.incomes, records.expenses, month),
        daily=daily_cumulative(records.incomes, records.expenses, month),
        category_totals=breakdown(records.expenses, month),
        category_pie=pie_breakdown(records.expenses, month),
        budgets=progress,
        average_budget_progress=budget_calc.average_progress(progress),
        goals=[goal_calc.goal_progress(goal) for goal in records.goals],
        available_funds=goal_calc.available_funds(totals.total_saved, records.goals),
        forecast=goal_calc.forecast(records.upcoming, totals.total_saved, start_of_day(now)),
        recurring=upcoming_schedule(records.recurring, start_of_day(now)),
    )


def build_snapshot(store, sessions: SessionManager, month: Optional[MonthPeriod] = None,
                   now: Optional[pd.Timestamp] = None) -> DashboardSnapshot:
    """Fetch the signed-in user's records and derive every dashboard view.

    Without a signed-in user the snapshot is built from empty record sets,
    so every figure is zero and ``authenticated`` is ``False``.
    """
    current = now if now is not None else local_now()
    selected = month if month is not None else MonthPeriod(current.year, current.month)
    user_id = sessions.current_user_id()
    if user_id is None:
        logger.debug("No signed-in user; building empty snapshot")
    records = fetch_records(store, user_id)
    return compute_snapshot(records, selected, current, user_id)
