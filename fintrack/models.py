"""Record types shared by the store and the aggregation engine.

Rows coming back from storage are parsed leniently (``from_row``): an
amount that cannot be read becomes ``0.0`` and a date that cannot be read
becomes ``None`` so a single malformed record never breaks a dashboard.
Records created by the user go through the stricter ``create`` factories,
which validate categories, frequencies and amounts.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .dates import parse_date_column, parse_local_date, start_of_day, to_iso_date

FRAME_COLUMNS = ['id', 'amount', 'category', 'label', 'date']
UNCATEGORIZED = 'Uncategorized'


class Category(str, Enum):
    """Closed vocabulary for expense, budget and recurring payment categories."""

    FOOD_DINING = 'Food & Dining'
    TRANSPORTATION = 'Transportation'
    SHOPPING = 'Shopping'
    BILLS_UTILITIES = 'Bills & Utilities'
    ENTERTAINMENT = 'Entertainment'
    HEALTHCARE = 'Healthcare'
    EDUCATION = 'Education'
    TRAVEL = 'Travel'
    OTHER = 'Other'


class Frequency(str, Enum):
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


def validate_category(value: Union[str, Category]) -> str:
    """Return the category label, raising ``ValueError`` if it is unknown.

    No trimming or case folding happens here: budgets match expenses by
    exact string, so ``"Shopping "`` is rejected instead of silently
    becoming a category no budget will ever see.
    """
    try:
        return Category(value).value
    except ValueError:
        allowed = ', '.join(c.value for c in Category)
        raise ValueError(f"Unknown category {value!r}; expected one of: {allowed}") from None


def parse_frequency(value: Any) -> Optional[Frequency]:
    if isinstance(value, Frequency):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Frequency(value.strip().lower())
    except ValueError:
        return None


def coerce_amount(value: Any) -> float:
    """Convert stored amount representations into floats, ``0.0`` on failure."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    if isinstance(value, str):
        cleaned = value.strip().replace('$', '').replace(',', '')
        if cleaned.startswith('(') and cleaned.endswith(')'):
            cleaned = f"-{cleaned[1:-1]}"
        value = cleaned
    number = pd.to_numeric(pd.Series([value]), errors='coerce').iloc[0]
    if pd.isna(number):
        return 0.0
    return float(number)


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    return str(value)


def _require_positive(amount: Any, field: str) -> float:
    value = coerce_amount(amount)
    if value <= 0:
        raise ValueError(f"{field} must be greater than zero")
    return value


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    id: Optional[int]
    amount: float
    category: str
    label: str
    date: Optional[pd.Timestamp]

    kind: ClassVar[str] = 'transaction'

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        description = _text(row.get('description'))
        category = _text(row.get('category'))
        return cls(
            id=row.get('id'),
            amount=coerce_amount(row.get('amount')),
            category=category,
            label=description or category,
            date=parse_local_date(row.get('date')),
        )

    def to_row(self) -> dict:
        return {
            'amount': self.amount,
            'category': self.category,
            'description': self.label,
            'date': to_iso_date(self.date),
        }


@dataclass(frozen=True)
class Income(Transaction):
    kind: ClassVar[str] = 'income'

    @classmethod
    def create(cls, label: str, amount: Any, category: str, date: Any) -> 'Income':
        parsed = parse_local_date(date)
        if parsed is None:
            raise ValueError("Income date is required")
        return cls(id=None, amount=coerce_amount(amount), category=category or '', label=label or category or '', date=parsed)


@dataclass(frozen=True)
class Expense(Transaction):
    kind: ClassVar[str] = 'expense'

    @classmethod
    def create(cls, label: str, amount: Any, category: Union[str, Category], date: Any) -> 'Expense':
        """Validated constructor used at the data-entry boundary.

        Negative amounts are accepted: they record a refund.
        """
        parsed = parse_local_date(date)
        if parsed is None:
            raise ValueError("Expense date is required")
        checked = validate_category(category)
        return cls(id=None, amount=coerce_amount(amount), category=checked, label=label or checked, date=parsed)


# ---------------------------------------------------------------------------
# Planning records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Budget:
    id: Optional[int]
    category: str
    amount: float
    start_date: Optional[pd.Timestamp] = None
    expiration_date: Optional[pd.Timestamp] = None
    created_at: Optional[pd.Timestamp] = None

    @property
    def effective_start(self) -> Optional[pd.Timestamp]:
        """Explicit start date, else creation day; ``None`` means unbounded."""
        anchor = self.start_date if self.start_date is not None else self.created_at
        return start_of_day(anchor) if anchor is not None else None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Budget':
        return cls(
            id=row.get('id'),
            category=_text(row.get('category')),
            amount=coerce_amount(row.get('amount')),
            start_date=parse_local_date(row.get('start_date')),
            expiration_date=parse_local_date(row.get('expiration_date')),
            created_at=parse_local_date(row.get('created_at')),
        )

    @classmethod
    def create(cls, category: Union[str, Category], amount: Any, start_date: Any = None,
               expiration_date: Any = None) -> 'Budget':
        start = parse_local_date(start_date)
        expiration = parse_local_date(expiration_date)
        if start is not None and expiration is not None and expiration < start:
            raise ValueError("Budget expiration date cannot be before its start date")
        return cls(
            id=None,
            category=validate_category(category),
            amount=_require_positive(amount, 'Budget amount'),
            start_date=start,
            expiration_date=expiration,
        )

    def to_row(self) -> dict:
        return {
            'category': self.category,
            'amount': self.amount,
            'start_date': to_iso_date(self.start_date),
            'expiration_date': to_iso_date(self.expiration_date),
        }


@dataclass(frozen=True)
class SavingsGoal:
    id: Optional[int]
    name: str
    target_amount: float
    saved_amount: float = 0.0
    due_date: Optional[pd.Timestamp] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'SavingsGoal':
        return cls(
            id=row.get('id'),
            name=_text(row.get('name')),
            target_amount=coerce_amount(row.get('target_amount')),
            saved_amount=max(0.0, coerce_amount(row.get('saved_amount'))),
            due_date=parse_local_date(row.get('due_date')),
        )

    @classmethod
    def create(cls, name: str, target_amount: Any, due_date: Any = None) -> 'SavingsGoal':
        if not name or not name.strip():
            raise ValueError("Goal name cannot be empty")
        return cls(
            id=None,
            name=name.strip(),
            target_amount=_require_positive(target_amount, 'Target amount'),
            due_date=parse_local_date(due_date),
        )

    def with_saved(self, saved_amount: float) -> 'SavingsGoal':
        return replace(self, saved_amount=saved_amount)

    def to_row(self) -> dict:
        return {
            'name': self.name,
            'target_amount': self.target_amount,
            'saved_amount': self.saved_amount,
            'due_date': to_iso_date(self.due_date),
        }


@dataclass(frozen=True)
class UpcomingExpense:
    id: Optional[int]
    name: str
    amount: float
    due_date: Optional[pd.Timestamp]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'UpcomingExpense':
        return cls(
            id=row.get('id'),
            name=_text(row.get('name')),
            amount=coerce_amount(row.get('amount')),
            due_date=parse_local_date(row.get('due_date')),
        )

    @classmethod
    def create(cls, name: str, amount: Any, due_date: Any) -> 'UpcomingExpense':
        parsed = parse_local_date(due_date)
        if parsed is None:
            raise ValueError("Due date is required")
        return cls(id=None, name=name, amount=_require_positive(amount, 'Amount'), due_date=parsed)

    def to_row(self) -> dict:
        return {'name': self.name, 'amount': self.amount, 'due_date': to_iso_date(self.due_date)}


@dataclass(frozen=True)
class RecurringPayment:
    id: Optional[int]
    name: str
    amount: float
    category: str
    frequency: Optional[Frequency]
    next_due_date: Optional[pd.Timestamp]
    auto_add: bool = True
    last_added: Optional[pd.Timestamp] = None
    description: str = ''

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'RecurringPayment':
        auto_add = row.get('auto_add')
        return cls(
            id=row.get('id'),
            name=_text(row.get('name')),
            amount=coerce_amount(row.get('amount')),
            category=_text(row.get('category')),
            frequency=parse_frequency(row.get('frequency')),
            next_due_date=parse_local_date(row.get('next_due_date')),
            auto_add=True if auto_add is None else bool(auto_add),
            last_added=parse_local_date(row.get('last_added')),
            description=_text(row.get('description')),
        )

    @classmethod
    def create(cls, name: str, amount: Any, category: Union[str, Category], frequency: Any,
               next_due_date: Any, auto_add: bool = True, description: str = '') -> 'RecurringPayment':
        if not name or not name.strip():
            raise ValueError("Payment name cannot be empty")
        parsed_frequency = parse_frequency(frequency)
        if parsed_frequency is None:
            raise ValueError(f"Unknown frequency {frequency!r}; expected weekly, monthly or yearly")
        due = parse_local_date(next_due_date)
        if due is None:
            raise ValueError("Next due date is required")
        return cls(
            id=None,
            name=name.strip(),
            amount=_require_positive(amount, 'Amount'),
            category=validate_category(category),
            frequency=parsed_frequency,
            next_due_date=due,
            auto_add=auto_add,
            description=description,
        )

    def to_row(self) -> dict:
        return {
            'name': self.name,
            'amount': self.amount,
            'category': self.category,
            'frequency': self.frequency.value if self.frequency else '',
            'next_due_date': to_iso_date(self.next_due_date),
            'auto_add': int(self.auto_add),
            'last_added': to_iso_date(self.last_added),
            'description': self.description,
        }


_KEPT_ON_REVISE = ('saved_amount', 'last_added', 'created_at')


def revise(record: Any, **fields: Any) -> Any:
    """Re-enter ``record`` through its validated ``create`` with ``fields``.

    The id is kept, and so are values the entry forms never edit: a
    goal's saved amount, a payment's last added day and a budget's
    creation stamp.
    """
    fresh = type(record).create(**fields)
    kept = {name: getattr(record, name) for name in _KEPT_ON_REVISE if hasattr(record, name)}
    return replace(fresh, id=record.id, **kept)


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

Records = Union[Iterable[Any], pd.DataFrame, None]


def _frame_row(record: Any) -> dict:
    return {
        'id': getattr(record, 'id', None),
        'amount': getattr(record, 'amount', 0.0),
        'category': getattr(record, 'category', ''),
        'label': getattr(record, 'label', None) or getattr(record, 'name', ''),
        'date': getattr(record, 'date', None) if hasattr(record, 'date') else getattr(record, 'due_date', None),
    }


def records_frame(records: Records) -> pd.DataFrame:
    """Build the engine's working DataFrame from records.

    Accepts model objects (transactions or upcoming expenses) or an
    existing DataFrame with at least ``amount`` and ``date`` columns.
    The result always has the columns ``id, amount, category, label,
    date`` with numeric amounts and datetime dates (``NaT`` when the date
    is missing or unparseable).
    """
    if records is None:
        frame = pd.DataFrame(columns=FRAME_COLUMNS)
    elif isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        rows: List[dict] = [_frame_row(record) for record in records]
        frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)

    for column in FRAME_COLUMNS:
        if column not in frame.columns:
            frame[column] = None
    frame['amount'] = pd.to_numeric(frame['amount'], errors='coerce').fillna(0.0).astype(float)
    frame['category'] = frame['category'].fillna('').astype(str)
    frame['label'] = frame['label'].fillna('').astype(str)
    # tz-aware columns are brought onto the naive local calendar too
    if (not pd.api.types.is_datetime64_any_dtype(frame['date'])
            or isinstance(frame['date'].dtype, pd.DatetimeTZDtype)):
        frame['date'] = parse_date_column(frame['date'])
    return frame
