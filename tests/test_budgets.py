import pandas as pd
import pytest

from fintrack.budgets import (
    average_progress,
    budget_expense_pie,
    budget_expenses,
    budget_progress,
    budgets_for_month,
    effective_window,
    is_visible_for_month,
    progress_frame,
    severity_for,
)
from fintrack.models import Budget, Expense
from fintrack.periods import MonthPeriod

NOW = pd.Timestamp(2025, 3, 15, 12, 0)


def _budget(amount=100.0, category='Shopping', start='2025-01-01', expiration=None, created=None, budget_id=1):
    return Budget.from_row({
        'id': budget_id,
        'category': category,
        'amount': amount,
        'start_date': start,
        'expiration_date': expiration,
        'created_at': created,
    })


def _expense(amount, date, category='Shopping', label='Store'):
    return Expense(id=None, amount=amount, category=category, label=label, date=pd.Timestamp(date))


def test_expense_after_expiration_is_ignored():
    budget = _budget(start='2025-01-01', expiration='2025-01-31')
    progress = budget_progress(budget, [_expense(40, '2025-01-31 18:00'), _expense(60, '2025-02-01')], NOW)
    assert progress.spent == 40
    assert progress.expense_count == 1


def test_over_budget_reports_over_by():
    progress = budget_progress(_budget(), [_expense(150, '2025-02-01')], NOW)
    assert progress.percentage == 150
    assert progress.remaining == -50
    assert progress.is_over
    assert progress.over_by == 50
    assert progress.bar_width == 100
    assert progress.severity == 'danger'


def test_refunds_exceeding_spend_show_full_remaining():
    progress = budget_progress(_budget(), [_expense(80, '2025-02-01'), _expense(-90, '2025-02-02')], NOW)
    assert progress.spent == -10
    assert progress.percentage == 0
    assert progress.remaining == 100
    assert progress.refund_excess == 10
    assert progress.raw_remaining == 110
    assert not progress.is_over
    assert progress.severity == 'ok'


def test_category_match_is_exact():
    progress = budget_progress(_budget(), [_expense(25, '2025-02-01', category='Shopping ')], NOW)
    assert progress.spent == 0


def test_window_falls_back_to_created_at_then_unbounded():
    from_created = _budget(start=None, created='2025-02-01')
    start, end = effective_window(from_created, NOW)
    assert start == pd.Timestamp(2025, 2, 1)
    assert end == pd.Timestamp(2025, 3, 15, 23, 59, 59, 999999)

    unbounded = _budget(start=None, created=None)
    progress = budget_progress(unbounded, [_expense(10, '1999-06-01')], NOW)
    assert progress.start is None
    assert progress.spent == 10


def test_zero_limit_does_not_divide_by_zero():
    progress = budget_progress(_budget(amount=0), [_expense(2, '2025-02-01')], NOW)
    assert progress.percentage == 200
    assert progress.over_by == 2


def test_future_expenses_not_counted_for_open_budget():
    progress = budget_progress(_budget(), [_expense(10, '2025-03-15 20:00'), _expense(10, '2025-03-16')], NOW)
    assert progress.spent == 10


@pytest.mark.parametrize('percentage,expected', [
    (0, 'ok'), (50, 'ok'), (50.01, 'warn'), (90, 'warn'), (90.01, 'danger'), (250, 'danger'),
])
def test_severity_tiers(percentage, expected):
    assert severity_for(percentage) == expected


def test_visibility_for_month():
    budget = _budget(start='2025-02-10', expiration='2025-04-05')
    assert not is_visible_for_month(budget, MonthPeriod(2025, 1))
    assert is_visible_for_month(budget, MonthPeriod(2025, 2))
    assert is_visible_for_month(budget, MonthPeriod(2025, 4))
    assert not is_visible_for_month(budget, MonthPeriod(2025, 5))


def test_budgets_for_month_spend_is_cumulative_since_inception():
    budgets = [_budget(budget_id=1), _budget(start='2025-06-01', budget_id=2)]
    expenses = [_expense(30, '2025-01-05'), _expense(20, '2025-03-01')]
    rows = budgets_for_month(budgets, expenses, MonthPeriod(2025, 3), NOW)
    assert [row.budget.id for row in rows] == [1]
    assert rows[0].spent == 50


def test_overlapping_budgets_are_independent():
    budgets = [_budget(budget_id=1), _budget(amount=40, start='2025-03-01', budget_id=2)]
    expenses = [_expense(30, '2025-01-05'), _expense(20, '2025-03-01')]
    rows = budgets_for_month(budgets, expenses, MonthPeriod(2025, 3), NOW)
    assert [row.spent for row in rows] == [50, 20]
    assert rows[1].percentage == 50


def test_progress_frame_and_average():
    rows = [
        budget_progress(_budget(budget_id=1), [_expense(40, '2025-02-01')], NOW),
        budget_progress(_budget(budget_id=2, category='Travel'), [_expense(95, '2025-02-01', 'Travel')], NOW),
        budget_progress(_budget(budget_id=3, category='Other'), [_expense(300, '2025-02-01', 'Other')], NOW),
    ]
    frame = progress_frame(rows)
    assert frame['severity'].tolist() == ['ok', 'danger', 'danger']
    assert average_progress(rows) == pytest.approx((40 + 95 + 100) / 3)
    assert average_progress([]) == 0


def test_budget_expenses_most_recent_first():
    matched = budget_expenses(_budget(), [_expense(1, '2025-01-05'), _expense(2, '2025-02-05'), _expense(3, '2025-01-20')], NOW)
    assert matched['amount'].tolist() == [2.0, 3.0, 1.0]


def test_budget_expense_pie_groups_positive_labels():
    long_label = 'Neighbourhood Hardware Superstore'
    pie = budget_expense_pie([
        _expense(10, '2025-01-05', label=long_label),
        _expense(15, '2025-01-06', label=long_label),
        _expense(5, '2025-01-07', label='Cafe'),
        _expense(-8, '2025-01-08', label='Cafe'),
    ])
    assert pie['amount'].tolist() == [25.0, 5.0]
    assert pie['name'].iloc[0] == long_label[:25] + '...'
    assert pie['full_name'].iloc[0] == long_label
    assert pie['name'].iloc[1] == 'Cafe'


def test_budget_expenses_accepts_tz_aware_dates():
    frame = pd.DataFrame({
        'amount': [25.0, 40.0],
        'category': ['Shopping', 'Shopping'],
        'label': ['Store', 'Later'],
        'date': pd.to_datetime(['2025-02-10 12:00', '2025-04-10 12:00']).tz_localize('UTC'),
    })
    matched = budget_expenses(_budget(), frame, NOW)
    assert matched['label'].tolist() == ['Store']
    assert matched['date'].dt.tz is None
