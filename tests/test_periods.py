import pandas as pd
import pytest

from fintrack.models import Expense
from fintrack.periods import (
    DateRange,
    MonthPeriod,
    YearPeriod,
    available_periods,
    filter_by_period,
    parse_period,
)


def _expense(amount, date):
    parsed = pd.Timestamp(date) if date else None
    return Expense(id=None, amount=amount, category='Other', label='x', date=parsed)


def test_month_navigation_wraps_years():
    assert MonthPeriod(2025, 12).next() == MonthPeriod(2026, 1)
    assert MonthPeriod(2025, 1).previous() == MonthPeriod(2024, 12)
    assert MonthPeriod(2025, 2).end.date() == pd.Timestamp(2025, 2, 28).date()
    with pytest.raises(ValueError):
        MonthPeriod(2025, 13)


def test_filter_by_month_excludes_undated_records():
    records = [_expense(10, '2025-01-01'), _expense(20, '2025-01-31 23:59'), _expense(30, '2025-02-01'), _expense(40, None)]
    filtered = filter_by_period(records, MonthPeriod(2025, 1))
    assert filtered['amount'].tolist() == [10.0, 20.0]


def test_date_range_includes_whole_last_day():
    records = [_expense(1, '2025-03-01'), _expense(2, '2025-03-10 22:15'), _expense(3, '2025-03-11')]
    filtered = filter_by_period(records, DateRange('2025-03-01', '2025-03-10'))
    assert filtered['amount'].tolist() == [1.0, 2.0]


def test_no_period_keeps_everything():
    records = [_expense(1, '2025-03-01'), _expense(2, None)]
    assert len(filter_by_period(records, None)) == 2


def test_parse_period_selectors():
    assert parse_period('2024') == YearPeriod(2024)
    assert parse_period('2024-07') == MonthPeriod(2024, 7)
    day = parse_period('2024-07-04')
    assert isinstance(day, DateRange)
    assert day.start == pd.Timestamp(2024, 7, 4)
    span = parse_period('2024-07-01..2024-07-15')
    assert span.label == '2024-07-01 to 2024-07-15'
    with pytest.raises(ValueError):
        parse_period('someday')


def test_available_periods_lists_data_months_newest_first():
    incomes = [_expense(1, '2024-12-05')]
    expenses = [_expense(1, '2025-02-01'), _expense(1, '2025-02-20'), _expense(1, None)]
    assert available_periods([incomes, expenses], 'months') == ['2025-02', '2024-12']
    assert available_periods([incomes, expenses], 'years') == ['2025', '2024']


def test_available_days_are_the_last_thirty():
    days = available_periods([], 'days', today=pd.Timestamp(2025, 3, 31))
    assert len(days) == 30
    assert days[0] == '2025-03-31'
    assert days[-1] == '2025-03-02'


def test_filter_accepts_tz_aware_frame():
    frame = pd.DataFrame({
        'amount': [5.0, 7.0],
        'date': [pd.Timestamp('2025-01-10 12:00', tz='UTC'), pd.Timestamp('2025-02-10 12:00', tz='UTC')],
    })
    filtered = filter_by_period(frame, MonthPeriod(2025, 1))
    assert filtered['amount'].tolist() == [5.0]
    assert filtered['date'].dt.tz is None
    assert filtered['date'].iloc[0].day == 10
