from dataclasses import replace

import pandas as pd
import pytest

from fintrack.models import (
    Budget,
    Category,
    Expense,
    Frequency,
    RecurringPayment,
    SavingsGoal,
    coerce_amount,
    records_frame,
    revise,
    validate_category,
)


def test_validate_category_accepts_vocabulary_only():
    assert validate_category('Shopping') == 'Shopping'
    assert validate_category(Category.TRAVEL) == 'Travel'
    with pytest.raises(ValueError):
        validate_category('Shopping ')
    with pytest.raises(ValueError):
        validate_category('shopping')


def test_expense_create_validates_category_and_allows_refunds():
    refund = Expense.create('Returned shoes', -40, 'Shopping', '2025-03-02')
    assert refund.amount == -40.0
    assert refund.date == pd.Timestamp(2025, 3, 2)
    with pytest.raises(ValueError):
        Expense.create('Lunch', 12, 'Lunch money', '2025-03-02')


def test_row_parsing_is_tolerant():
    expense = Expense.from_row({'id': 3, 'amount': 'oops', 'category': None, 'description': 'Thing', 'date': 'bad'})
    assert expense.amount == 0.0
    assert expense.category == ''
    assert expense.date is None
    assert coerce_amount('$1,234.50') == 1234.5
    assert coerce_amount('(12.00)') == -12.0
    assert coerce_amount(float('nan')) == 0.0


def test_budget_effective_start_prefers_start_date():
    explicit = Budget.from_row({'id': 1, 'category': 'Travel', 'amount': 100,
                                'start_date': '2025-01-10', 'created_at': '2024-12-01'})
    fallback = Budget.from_row({'id': 2, 'category': 'Travel', 'amount': 100, 'created_at': '2024-12-01'})
    unbounded = Budget.from_row({'id': 3, 'category': 'Travel', 'amount': 100})
    assert explicit.effective_start == pd.Timestamp(2025, 1, 10)
    assert fallback.effective_start == pd.Timestamp(2024, 12, 1)
    assert unbounded.effective_start is None


def test_budget_create_rejects_bad_input():
    with pytest.raises(ValueError):
        Budget.create('Travel', 0)
    with pytest.raises(ValueError):
        Budget.create('Travel', 100, start_date='2025-02-01', expiration_date='2025-01-01')


def test_recurring_payment_frequency_parsing():
    payment = RecurringPayment.from_row({'id': 1, 'name': 'Gym', 'amount': 30, 'category': 'Healthcare',
                                         'frequency': 'Monthly', 'next_due_date': '2025-01-05', 'auto_add': 0})
    assert payment.frequency is Frequency.MONTHLY
    assert payment.auto_add is False
    with pytest.raises(ValueError):
        RecurringPayment.create('Gym', 30, 'Healthcare', 'fortnightly', '2025-01-05')


def test_goal_create_requires_positive_target():
    with pytest.raises(ValueError):
        SavingsGoal.create('Trip', -5)
    assert SavingsGoal.create(' Trip ', 500).name == 'Trip'


def test_records_frame_shapes_models_and_frames():
    frame = records_frame([
        Expense(id=1, amount=10.0, category='Travel', label='Train', date=pd.Timestamp(2025, 1, 2)),
        Expense(id=2, amount=5.0, category='Travel', label='Bus', date=None),
    ])
    assert list(frame.columns) == ['id', 'amount', 'category', 'label', 'date']
    assert frame['date'].isna().tolist() == [False, True]

    raw = records_frame(pd.DataFrame({'amount': ['4', 'x'], 'date': ['2025-01-01', None]}))
    assert raw['amount'].tolist() == [4.0, 0.0]
    assert raw['category'].tolist() == ['', '']


def test_revise_validates_and_keeps_bookkeeping_fields():
    goal = SavingsGoal(id=4, name='Trip', target_amount=500.0, saved_amount=120.0)
    revised = revise(goal, name='Japan trip', target_amount=800, due_date='2025-12-01')
    assert revised.id == 4
    assert revised.saved_amount == 120.0
    assert revised.target_amount == 800.0
    assert revised.due_date == pd.Timestamp(2025, 12, 1)

    payment = RecurringPayment.create('Gym', 30, 'Healthcare', 'monthly', '2025-03-09')
    payment = replace(payment, id=2, last_added=pd.Timestamp(2025, 2, 9))
    moved = revise(payment, name='Gym', amount=35, category='Healthcare', frequency='weekly',
                   next_due_date='2025-03-12', auto_add=False)
    assert moved.id == 2
    assert moved.last_added == pd.Timestamp(2025, 2, 9)
    assert moved.frequency is Frequency.WEEKLY
    assert not moved.auto_add

    expense = Expense(id=9, amount=10.0, category='Shopping', label='Store', date=pd.Timestamp(2025, 1, 2))
    with pytest.raises(ValueError):
        revise(expense, label='Store', amount=10, category='Groceries', date='2025-01-02')
