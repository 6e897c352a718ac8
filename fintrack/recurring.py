"""Recurring payment schedules and the auto-add due check."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .config import DUE_SOON_DAYS
from .dates import add_months, start_of_day, today as local_today
from .models import Expense, Frequency, RecurringPayment

logger = logging.getLogger(__name__)

STATUS_OVERDUE = 'overdue'
STATUS_DUE_SOON = 'due_soon'
STATUS_SCHEDULED = 'scheduled'

SCHEDULE_COLUMNS = [
    'id', 'name', 'amount', 'category', 'frequency', 'next_due_date',
    'days_until_due', 'status', 'auto_add',
]


def next_due_date(current: pd.Timestamp, frequency: Frequency) -> pd.Timestamp:
    """Advance ``current`` by one period.

    Monthly and yearly steps clamp to the end of a shorter month, so
    Jan 31 becomes Feb 28 (or 29) and Feb 29 becomes Feb 28.
    """
    frequency = Frequency(frequency)
    if frequency is Frequency.WEEKLY:
        return current + pd.Timedelta(days=7)
    if frequency is Frequency.MONTHLY:
        return add_months(current, 1)
    return add_months(current, 12)


def _today(today: Optional[pd.Timestamp]) -> pd.Timestamp:
    return start_of_day(today if today is not None else local_today())


def is_due(payment: RecurringPayment, today: Optional[pd.Timestamp] = None) -> bool:
    day = _today(today)
    if not payment.auto_add or payment.next_due_date is None:
        return False
    if payment.last_added is not None and start_of_day(payment.last_added) == day:
        return False
    return start_of_day(payment.next_due_date) <= day


def days_until_due(payment: RecurringPayment, today: Optional[pd.Timestamp] = None) -> Optional[int]:
    if payment.next_due_date is None:
        return None
    return int((start_of_day(payment.next_due_date) - _today(today)).days)


def due_status(payment: RecurringPayment, today: Optional[pd.Timestamp] = None,
               due_soon_days: int = DUE_SOON_DAYS) -> Optional[str]:
    days = days_until_due(payment, today)
    if days is None:
        return None
    if days < 0:
        return STATUS_OVERDUE
    if days <= due_soon_days:
        return STATUS_DUE_SOON
    return STATUS_SCHEDULED


def upcoming_schedule(payments: Iterable[RecurringPayment], today: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """Payments ordered by next due date, undated ones last."""
    day = _today(today)
    rows = [
        {
            'id': payment.id,
            'name': payment.name,
            'amount': payment.amount,
            'category': payment.category,
            'frequency': payment.frequency.value if payment.frequency else '',
            'next_due_date': payment.next_due_date,
            'days_until_due': days_until_due(payment, day),
            'status': due_status(payment, day),
            'auto_add': payment.auto_add,
        }
        for payment in payments
    ]
    frame = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    frame['next_due_date'] = pd.to_datetime(frame['next_due_date'], errors='coerce')
    return frame.sort_values('next_due_date', na_position='last', kind='stable').reset_index(drop=True)


def process_due_payments(store, user_id, today: Optional[pd.Timestamp] = None) -> List[Expense]:
    """Materialise one expense for every payment that is due today.

    Each payment is first claimed in the store: its due date moves one
    period past the previous one and ``last_added`` becomes today, in a
    single conditional update.  Only the check that wins the claim adds
    the expense, so concurrent checks on the same day add it once.  A
    payment that fails is logged and skipped; the rest still run.
    """
    if user_id is None:
        return []
    day = _today(today)
    created: List[Expense] = []
    for payment in store.fetch_recurring_payments(user_id):
        if not is_due(payment, day):
            continue
        if payment.frequency is None:
            logger.warning("Skipping recurring payment %s (%s): unknown frequency", payment.id, payment.name)
            continue

        advanced = next_due_date(payment.next_due_date, payment.frequency)
        if not store.claim_recurring_payment(user_id, payment, advanced, day):
            logger.debug("Recurring payment %s already added for %s", payment.id, day.date().isoformat())
            continue

        expense = store.create_expense(user_id, Expense(
            id=None,
            amount=payment.amount,
            category=payment.category,
            label=payment.name,
            date=day,
        ))
        if expense is None:
            logger.warning("Could not add expense for recurring payment %s (%s)", payment.id, payment.name)
            # release the claim so the next check retries
            if store.update_recurring_payment(user_id, payment) is None:
                logger.error("Could not restore recurring payment %s after a failed insert", payment.id)
            continue

        logger.info("Added recurring payment %s for %s", payment.name, day.date().isoformat())
        created.append(expense)
    return created


class DueCheckTracker:
    """Runs the due check once per signed-in user and calendar day.

    A long-lived view keeps one tracker; switching user or crossing
    midnight makes the next call run the check again.
    """

    def __init__(self):
        self.last_checked: Optional[Tuple[str, pd.Timestamp]] = None

    def run(self, store, user_id, today: Optional[pd.Timestamp] = None) -> List[Expense]:
        if user_id is None:
            return []
        key = (str(user_id), _today(today))
        if key == self.last_checked:
            return []
        self.last_checked = key
        return process_due_payments(store, user_id, key[1])
