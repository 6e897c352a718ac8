"""SQLite record store scoped by user.

Every fetch returns model objects; storage errors are logged and turned
into an empty list (fetch), ``None`` (create / update) or ``False``
(delete) so a broken database degrades to an empty dashboard instead of
raising into the aggregation code.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Type, Union

import pandas as pd

from .config import get_db_path
from .dates import to_iso_date, today as local_today
from .goals import contribute, withdraw
from .models import Budget, Expense, Income, RecurringPayment, SavingsGoal, UpcomingExpense

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS incomes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    amount REAL,
    category TEXT,
    description TEXT,
    date TEXT
);

CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    amount REAL,
    category TEXT,
    description TEXT,
    date TEXT
);

CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    category TEXT,
    amount REAL,
    start_date TEXT,
    expiration_date TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS savings_goals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT,
    target_amount REAL,
    saved_amount REAL DEFAULT 0,
    due_date TEXT
);

CREATE TABLE IF NOT EXISTS upcoming_expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT,
    amount REAL,
    due_date TEXT
);

CREATE TABLE IF NOT EXISTS recurring_payments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT,
    amount REAL,
    category TEXT,
    frequency TEXT,
    next_due_date TEXT,
    auto_add INTEGER DEFAULT 1,
    last_added TEXT,
    description TEXT
);

CREATE INDEX IF NOT EXISTS ix_incomes_user ON incomes (user_id, date);
CREATE INDEX IF NOT EXISTS ix_expenses_user ON expenses (user_id, date);
CREATE INDEX IF NOT EXISTS ix_budgets_user ON budgets (user_id);
CREATE INDEX IF NOT EXISTS ix_goals_user ON savings_goals (user_id);
CREATE INDEX IF NOT EXISTS ix_upcoming_user ON upcoming_expenses (user_id, due_date);
CREATE INDEX IF NOT EXISTS ix_recurring_user ON recurring_payments (user_id, next_due_date);
"""

# table name -> model built from its rows
TABLES: Dict[str, Type] = {
    'incomes': Income,
    'expenses': Expense,
    'budgets': Budget,
    'savings_goals': SavingsGoal,
    'upcoming_expenses': UpcomingExpense,
    'recurring_payments': RecurringPayment,
}

ORDER_BY = {
    'incomes': 'date ASC, id ASC',
    'expenses': 'date ASC, id ASC',
    'budgets': 'id ASC',
    'savings_goals': 'id ASC',
    'upcoming_expenses': 'due_date ASC, id ASC',
    'recurring_payments': 'next_due_date ASC, id ASC',
}

STORAGE_ERRORS = (sqlite3.Error, pd.errors.DatabaseError)


class RecordStore:
    """Per-user CRUD over the six record tables."""

    def __init__(self, db_path: Union[str, Path, None] = None, initialize: bool = True):
        self.db_path = Path(db_path) if db_path is not None else Path(get_db_path())
        if initialize:
            self.init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    # ------------------------------------------------------------------
    # Generic table access
    # ------------------------------------------------------------------

    def _fetch(self, table: str, user_id) -> List[Any]:
        if user_id is None:
            return []
        sql = f"SELECT * FROM {table} WHERE user_id = ? ORDER BY {ORDER_BY[table]}"
        try:
            with self.connect() as conn:
                df = pd.read_sql_query(sql, conn, params=[str(user_id)])
        except STORAGE_ERRORS as exc:
            logger.error("Failed to fetch %s for user %s: %s", table, user_id, exc)
            return []
        model = TABLES[table]
        records = [model.from_row(row) for row in df.to_dict('records')]
        logger.debug("Fetched %d %s for user %s", len(records), table, user_id)
        return records

    def _fetch_one(self, table: str, user_id, record_id: int) -> Optional[Any]:
        sql = f"SELECT * FROM {table} WHERE user_id = ? AND id = ?"
        try:
            with self.connect() as conn:
                df = pd.read_sql_query(sql, conn, params=[str(user_id), int(record_id)])
        except STORAGE_ERRORS as exc:
            logger.error("Failed to fetch %s %s: %s", table, record_id, exc)
            return None
        if df.empty:
            return None
        return TABLES[table].from_row(df.to_dict('records')[0])

    def _insert(self, table: str, user_id, values: Dict[str, Any]) -> Optional[int]:
        if user_id is None:
            return None
        columns = ['user_id', *values]
        placeholders = ', '.join('?' for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, [str(user_id), *values.values()])
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as exc:
            logger.error("Failed to insert into %s: %s", table, exc)
            return None

    def _update(self, table: str, user_id, record_id: Optional[int], values: Dict[str, Any]) -> bool:
        if user_id is None or record_id is None:
            return False
        assignments = ', '.join(f"{column} = ?" for column in values)
        sql = f"UPDATE {table} SET {assignments} WHERE id = ? AND user_id = ?"
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, [*values.values(), int(record_id), str(user_id)])
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("Failed to update %s %s: %s", table, record_id, exc)
            return False

    def _delete(self, table: str, user_id, record_id: int) -> bool:
        if user_id is None:
            return False
        try:
            with self.connect() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {table} WHERE id = ? AND user_id = ?", (int(record_id), str(user_id))
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("Failed to delete %s %s: %s", table, record_id, exc)
            return False

    def _create(self, table: str, user_id, record, values: Optional[Dict[str, Any]] = None):
        row = values if values is not None else record.to_row()
        new_id = self._insert(table, user_id, row)
        if new_id is None:
            return None
        return replace(record, id=new_id)

    def _save(self, table: str, user_id, record):
        if not self._update(table, user_id, record.id, record.to_row()):
            return None
        return record

    # ------------------------------------------------------------------
    # Incomes and expenses
    # ------------------------------------------------------------------

    def fetch_incomes(self, user_id) -> List[Income]:
        return self._fetch('incomes', user_id)

    def create_income(self, user_id, income: Income) -> Optional[Income]:
        return self._create('incomes', user_id, income)

    def update_income(self, user_id, income: Income) -> Optional[Income]:
        return self._save('incomes', user_id, income)

    def delete_income(self, user_id, income_id: int) -> bool:
        return self._delete('incomes', user_id, income_id)

    def fetch_expenses(self, user_id) -> List[Expense]:
        return self._fetch('expenses', user_id)

    def create_expense(self, user_id, expense: Expense) -> Optional[Expense]:
        return self._create('expenses', user_id, expense)

    def update_expense(self, user_id, expense: Expense) -> Optional[Expense]:
        return self._save('expenses', user_id, expense)

    def delete_expense(self, user_id, expense_id: int) -> bool:
        return self._delete('expenses', user_id, expense_id)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def fetch_budgets(self, user_id) -> List[Budget]:
        return self._fetch('budgets', user_id)

    def create_budget(self, user_id, budget: Budget) -> Optional[Budget]:
        created_at = budget.created_at if budget.created_at is not None else local_today()
        stamped = replace(budget, created_at=created_at)
        row = dict(stamped.to_row(), created_at=to_iso_date(created_at))
        return self._create('budgets', user_id, stamped, row)

    def update_budget(self, user_id, budget: Budget) -> Optional[Budget]:
        return self._save('budgets', user_id, budget)

    def delete_budget(self, user_id, budget_id: int) -> bool:
        return self._delete('budgets', user_id, budget_id)

    # ------------------------------------------------------------------
    # Savings goals
    # ------------------------------------------------------------------

    def fetch_savings_goals(self, user_id) -> List[SavingsGoal]:
        return self._fetch('savings_goals', user_id)

    def create_savings_goal(self, user_id, goal: SavingsGoal) -> Optional[SavingsGoal]:
        return self._create('savings_goals', user_id, goal)

    def update_savings_goal(self, user_id, goal: SavingsGoal) -> Optional[SavingsGoal]:
        return self._save('savings_goals', user_id, goal)

    def delete_savings_goal(self, user_id, goal_id: int) -> bool:
        return self._delete('savings_goals', user_id, goal_id)

    def contribute_to_goal(self, user_id, goal_id: int, amount) -> Optional[SavingsGoal]:
        """Add ``amount`` to a stored goal; ``None`` if the goal is missing."""
        goal = self._fetch_one('savings_goals', user_id, goal_id)
        if goal is None:
            return None
        return self._persist_saved(user_id, contribute(goal, amount))

    def withdraw_from_goal(self, user_id, goal_id: int, amount) -> Optional[SavingsGoal]:
        """Take ``amount`` out of a stored goal.

        Raises ``InsufficientFundsError`` without touching the row when
        the goal holds less than ``amount``.
        """
        goal = self._fetch_one('savings_goals', user_id, goal_id)
        if goal is None:
            return None
        return self._persist_saved(user_id, withdraw(goal, amount))

    def _persist_saved(self, user_id, goal: SavingsGoal) -> Optional[SavingsGoal]:
        if not self._update('savings_goals', user_id, goal.id, {'saved_amount': goal.saved_amount}):
            return None
        return goal

    # ------------------------------------------------------------------
    # Upcoming expenses and recurring payments
    # ------------------------------------------------------------------

    def fetch_upcoming_expenses(self, user_id) -> List[UpcomingExpense]:
        return self._fetch('upcoming_expenses', user_id)

    def create_upcoming_expense(self, user_id, upcoming: UpcomingExpense) -> Optional[UpcomingExpense]:
        return self._create('upcoming_expenses', user_id, upcoming)

    def update_upcoming_expense(self, user_id, upcoming: UpcomingExpense) -> Optional[UpcomingExpense]:
        return self._save('upcoming_expenses', user_id, upcoming)

    def delete_upcoming_expense(self, user_id, upcoming_id: int) -> bool:
        return self._delete('upcoming_expenses', user_id, upcoming_id)

    def fetch_recurring_payments(self, user_id) -> List[RecurringPayment]:
        return self._fetch('recurring_payments', user_id)

    def create_recurring_payment(self, user_id, payment: RecurringPayment) -> Optional[RecurringPayment]:
        return self._create('recurring_payments', user_id, payment)

    def update_recurring_payment(self, user_id, payment: RecurringPayment) -> Optional[RecurringPayment]:
        return self._save('recurring_payments', user_id, payment)

    def delete_recurring_payment(self, user_id, payment_id: int) -> bool:
        return self._delete('recurring_payments', user_id, payment_id)

    def claim_recurring_payment(self, user_id, payment: RecurringPayment, next_due, day) -> bool:
        """Stamp ``last_added = day`` and advance the due date in one statement.

        Returns ``True`` only for the caller whose update took effect; a
        payment already stamped with ``day`` is left alone.
        """
        if user_id is None or payment.id is None:
            return False
        stamp = to_iso_date(day)
        sql = (
            "UPDATE recurring_payments SET last_added = ?, next_due_date = ? "
            "WHERE id = ? AND user_id = ? AND (last_added IS NULL OR last_added <> ?)"
        )
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, (stamp, to_iso_date(next_due), int(payment.id), str(user_id), stamp))
                conn.commit()
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            logger.error("Failed to claim recurring payment %s: %s", payment.id, exc)
            return False
