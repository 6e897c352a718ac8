import logging
import threading
from dataclasses import replace

import pandas as pd

from fintrack.db import RecordStore
from fintrack.models import Frequency, RecurringPayment
from fintrack.recurring import (
    DueCheckTracker,
    days_until_due,
    due_status,
    is_due,
    next_due_date,
    process_due_payments,
    upcoming_schedule,
)

TODAY = pd.Timestamp(2025, 3, 10)


def _payment(due='2025-03-09', frequency=Frequency.MONTHLY, auto_add=True, last_added=None, name='Gym', payment_id=None):
    return RecurringPayment(
        id=payment_id,
        name=name,
        amount=30.0,
        category='Healthcare',
        frequency=frequency,
        next_due_date=pd.Timestamp(due),
        auto_add=auto_add,
        last_added=pd.Timestamp(last_added) if last_added else None,
    )


class _FlakyStore:
    """In-memory store whose expense inserts fail for one payment name."""

    def __init__(self, payments, failing_name):
        self.payments = {payment.id: payment for payment in payments}
        self.failing_name = failing_name
        self.expenses = []

    def fetch_recurring_payments(self, user_id):
        return list(self.payments.values())

    def create_expense(self, user_id, expense):
        if expense.label == self.failing_name:
            return None
        created = replace(expense, id=len(self.expenses) + 1)
        self.expenses.append(created)
        return created

    def update_recurring_payment(self, user_id, payment):
        self.payments[payment.id] = payment
        return payment

    def claim_recurring_payment(self, user_id, payment, next_due, day):
        if self.payments[payment.id].last_added == day:
            return False
        self.payments[payment.id] = replace(payment, next_due_date=next_due, last_added=day)
        return True


class _LockstepStore(RecordStore):
    """Store whose recurring fetch waits until every checker has fetched."""

    def __init__(self, db_path, parties):
        super().__init__(db_path)
        self.barrier = threading.Barrier(parties, timeout=10)

    def fetch_recurring_payments(self, user_id):
        payments = super().fetch_recurring_payments(user_id)
        self.barrier.wait()
        return payments


class _CountingStore:
    def __init__(self):
        self.checked = []

    def fetch_recurring_payments(self, user_id):
        self.checked.append(user_id)
        return []


def test_next_due_date_steps():
    assert next_due_date(pd.Timestamp(2025, 1, 1), Frequency.WEEKLY) == pd.Timestamp(2025, 1, 8)
    assert next_due_date(pd.Timestamp(2025, 1, 31), Frequency.MONTHLY) == pd.Timestamp(2025, 2, 28)
    assert next_due_date(pd.Timestamp(2024, 2, 29), Frequency.YEARLY) == pd.Timestamp(2025, 2, 28)
    assert next_due_date(pd.Timestamp(2025, 1, 15), 'monthly') == pd.Timestamp(2025, 2, 15)


def test_is_due_rules():
    assert is_due(_payment(due='2025-03-09'), TODAY)
    assert is_due(_payment(due='2025-03-10'), TODAY)
    assert not is_due(_payment(due='2025-03-11'), TODAY)
    assert not is_due(_payment(auto_add=False), TODAY)
    assert not is_due(_payment(last_added='2025-03-10'), TODAY)


def test_due_status_buckets():
    assert due_status(_payment(due='2025-03-09'), TODAY) == 'overdue'
    assert due_status(_payment(due='2025-03-13'), TODAY) == 'due_soon'
    assert due_status(_payment(due='2025-03-14'), TODAY) == 'scheduled'
    assert days_until_due(_payment(due='2025-03-14'), TODAY) == 4


def test_due_check_twice_same_day_adds_one_expense(tmp_path):
    store = RecordStore(tmp_path / 'fintrack.db')
    store.create_recurring_payment('alice', _payment(due='2025-03-09'))

    first = process_due_payments(store, 'alice', TODAY)
    second = process_due_payments(store, 'alice', TODAY)

    assert len(first) == 1
    assert second == []
    expenses = store.fetch_expenses('alice')
    assert len(expenses) == 1
    assert expenses[0].date == TODAY
    assert expenses[0].label == 'Gym'
    assert expenses[0].category == 'Healthcare'

    payment = store.fetch_recurring_payments('alice')[0]
    assert payment.next_due_date == pd.Timestamp(2025, 4, 9)
    assert payment.last_added == TODAY


def test_concurrent_due_checks_add_one_expense(tmp_path):
    store = _LockstepStore(tmp_path / 'fintrack.db', parties=2)
    store.create_recurring_payment('alice', _payment(due='2025-03-09'))
    results = []

    def check():
        results.append(process_due_payments(store, 'alice', TODAY))

    threads = [threading.Thread(target=check) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=15)

    assert len(results) == 2
    assert sorted(len(added) for added in results) == [0, 1]
    assert len(store.fetch_expenses('alice')) == 1
    reopened = RecordStore(tmp_path / 'fintrack.db')
    assert reopened.fetch_recurring_payments('alice')[0].next_due_date == pd.Timestamp(2025, 4, 9)


def test_claim_succeeds_once_per_day(tmp_path):
    store = RecordStore(tmp_path / 'fintrack.db')
    payment = store.create_recurring_payment('alice', _payment(due='2025-03-09'))
    advanced = pd.Timestamp(2025, 4, 9)

    assert store.claim_recurring_payment('alice', payment, advanced, TODAY)
    assert not store.claim_recurring_payment('alice', payment, advanced, TODAY)
    assert not store.claim_recurring_payment('bob', payment, advanced, TODAY + pd.Timedelta(days=1))
    assert store.claim_recurring_payment('alice', payment, advanced, TODAY + pd.Timedelta(days=1))


def test_due_check_tracker_runs_once_per_user_and_day():
    store = _CountingStore()
    tracker = DueCheckTracker()

    tracker.run(store, 'alice', TODAY)
    tracker.run(store, 'alice', TODAY + pd.Timedelta(hours=5))
    assert store.checked == ['alice']

    tracker.run(store, 'bob', TODAY)
    tracker.run(store, 'bob', TODAY + pd.Timedelta(days=1))
    tracker.run(store, None, TODAY)
    assert store.checked == ['alice', 'bob', 'bob']


def test_anonymous_user_processes_nothing(tmp_path):
    store = RecordStore(tmp_path / 'fintrack.db')
    assert process_due_payments(store, None, TODAY) == []


def test_one_failing_payment_does_not_block_others(caplog):
    store = _FlakyStore([
        _payment(name='Broken', payment_id=1),
        _payment(name='Rent', payment_id=2),
        _payment(name='Odd', payment_id=3, frequency=None),
    ], failing_name='Broken')

    with caplog.at_level(logging.WARNING, logger='fintrack.recurring'):
        added = process_due_payments(store, 'alice', TODAY)

    assert [expense.label for expense in added] == ['Rent']
    assert store.payments[1].next_due_date == pd.Timestamp(2025, 3, 9)
    assert store.payments[2].next_due_date == pd.Timestamp(2025, 4, 9)
    assert 'Broken' in caplog.text
    assert 'unknown frequency' in caplog.text


def test_upcoming_schedule_sorted_by_due_date():
    schedule = upcoming_schedule([
        _payment(due='2025-04-01', name='Later'),
        _payment(due='2025-03-05', name='Late'),
        replace(_payment(name='Undated'), next_due_date=None),
    ], TODAY)
    assert schedule['name'].tolist() == ['Late', 'Later', 'Undated']
    assert schedule['status'].tolist()[:2] == ['overdue', 'scheduled']
