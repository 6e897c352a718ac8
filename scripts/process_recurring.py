#!/usr/bin/env python3
"""Add today's due recurring payments for a user as expenses."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fintrack import config
from fintrack.dates import parse_local_date
from fintrack.db import RecordStore
from fintrack.formatting import format_currency
from fintrack.recurring import process_due_payments, upcoming_schedule


def main(user_id: str, db_path: Optional[str] = None, today: Optional[str] = None, show_schedule: bool = False) -> int:
    config.configure_logging()
    store = RecordStore(db_path)
    day = parse_local_date(today) if today else None
    if today and day is None:
        print(f"Invalid date: {today}")
        return 1

    added = process_due_payments(store, user_id, day)
    if not added:
        print("No recurring payments due.")
    for expense in added:
        print(f"Added {expense.label}: {format_currency(expense.amount)} on {expense.date.date().isoformat()}")

    if show_schedule:
        schedule = upcoming_schedule(store.fetch_recurring_payments(user_id), day)
        print("\nSchedule:")
        if schedule.empty:
            print("(none)")
        else:
            print(schedule[['name', 'amount', 'frequency', 'next_due_date', 'status']].to_string(index=False))
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Materialise due recurring payments as expenses.')
    parser.add_argument('user_id', help='User whose payments should be checked')
    parser.add_argument('--db', dest='db_path', default=None, help='SQLite database path (defaults to FINTRACK_DB_PATH)')
    parser.add_argument('--today', default=None, help='Override the current date (YYYY-MM-DD)')
    parser.add_argument('--schedule', action='store_true', help='Print the upcoming schedule afterwards')
    args = parser.parse_args()
    sys.exit(main(args.user_id, db_path=args.db_path, today=args.today, show_schedule=args.schedule))
