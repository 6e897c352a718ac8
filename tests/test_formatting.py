import pandas as pd

from fintrack.budgets import budget_progress
from fintrack.formatting import budget_status_message, escape_dollar_for_markdown, format_currency, format_percent
from fintrack.models import Budget, Expense

NOW = pd.Timestamp(2025, 1, 31)


def _progress(*amounts):
    budget = Budget(id=1, category='Shopping', amount=100.0, start_date=pd.Timestamp(2025, 1, 1))
    expenses = [
        Expense(id=None, amount=amount, category='Shopping', label='Store', date=pd.Timestamp(2025, 1, 10))
        for amount in amounts
    ]
    return budget_progress(budget, expenses, NOW)


def test_format_currency_signs_and_rounding():
    assert format_currency(1234.567) == '$1,234.57'
    assert format_currency(-12) == '-$12.00'
    assert format_currency(0) == '$0.00'
    assert format_currency(-0.001) == '$0.00'
    assert format_currency(1234.5, include_sign=False) == '1,234.50'
    assert escape_dollar_for_markdown(5) == '\\$5.00'


def test_format_percent():
    assert format_percent(12.345) == '12.3%'
    assert format_percent(5, signed=True) == '+5.0%'
    assert format_percent(None) == 'N/A'


def test_budget_status_messages():
    assert budget_status_message(_progress(150)) == 'Over by $50.00'
    assert budget_status_message(_progress(80, -90)) == 'Refunds exceed expenses by $10.00'
    assert budget_status_message(_progress(40)) == '$60.00 remaining'
