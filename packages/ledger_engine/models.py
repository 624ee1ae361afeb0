"""Domain value objects for ``ledger_engine``.

Everything returned to callers is an immutable value: enums for the closed
vocabularies, frozen dataclasses for entities, and pydantic models for the
import/export records exchanged with the backup collaborator. The ORM rows in
``db.models.ledger`` never leave the repositories.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import StrEnum

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from . import dates

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


class Currency(StrEnum):
    KRW = "KRW"
    USD = "USD"
    EUR = "EUR"
    JPY = "JPY"
    CNY = "CNY"
    GBP = "GBP"

    @property
    def symbol(self) -> str:
        return _CURRENCY_SYMBOLS[self]

    @property
    def decimal_places(self) -> int:
        return 0 if self in (Currency.KRW, Currency.JPY) else 2

    @classmethod
    def parse(cls, code: str) -> Currency:
        try:
            return cls(code.strip().upper())
        except ValueError:
            raise ValueError(f"unsupported currency code: {code!r}") from None


_CURRENCY_SYMBOLS = {
    Currency.KRW: "₩",
    Currency.USD: "$",
    Currency.EUR: "€",
    Currency.JPY: "¥",
    Currency.CNY: "¥",
    Currency.GBP: "£",
}


class BudgetPeriod(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        """Inclusive ``(start, end)`` of the period containing ``now``."""

        if self is BudgetPeriod.WEEKLY:
            start = dates.start_of_week(now)
            return start, dates.end_of_day(start + timedelta(days=6))
        if self is BudgetPeriod.MONTHLY:
            return dates.start_of_month(now), dates.end_of_month(now)
        return datetime(now.year, 1, 1), dates.end_of_day(datetime(now.year, 12, 31))


class RecurringFrequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def step(self) -> relativedelta:
        return _FREQUENCY_STEPS[self]

    def advance(self, dt: datetime) -> datetime:
        return dt + self.step


_FREQUENCY_STEPS = {
    RecurringFrequency.DAILY: relativedelta(days=1),
    RecurringFrequency.WEEKLY: relativedelta(weeks=1),
    RecurringFrequency.BIWEEKLY: relativedelta(weeks=2),
    RecurringFrequency.MONTHLY: relativedelta(months=1),
    RecurringFrequency.YEARLY: relativedelta(years=1),
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeoLocation:
    latitude: float
    longitude: float
    name: str


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single ledger entry.

    ``amount`` is always strictly positive; the direction lives in ``type``
    and is folded in by :attr:`signed_amount`.
    """

    id: uuid.UUID
    amount: Decimal
    type: TransactionType
    date: datetime
    note: str = ""
    category_id: uuid.UUID | None = None
    currency: Currency = Currency.KRW
    created_at: datetime | None = None
    updated_at: datetime | None = None
    receipt_image: bytes | None = field(default=None, repr=False)
    tag_names: tuple[str, ...] = ()
    location: GeoLocation | None = None
    wallet_id: uuid.UUID | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type is TransactionType.INCOME else -self.amount

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.type is TransactionType.EXPENSE


@dataclass(frozen=True, slots=True)
class Category:
    id: uuid.UUID
    name: str
    type: TransactionType
    icon: str = ""
    color_hex: str = "#8E8E93"
    is_default: bool = False
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class Budget:
    id: uuid.UUID
    amount: Decimal
    period: BudgetPeriod
    start_date: datetime
    category_id: uuid.UUID | None = None

    @property
    def is_total(self) -> bool:
        return self.category_id is None

    def current_period_dates(self, now: datetime) -> tuple[datetime, datetime]:
        return self.period.bounds(now)


@dataclass(frozen=True, slots=True)
class RecurringTransaction:
    """Template that materializes into a Transaction on every due date."""

    id: uuid.UUID
    amount: Decimal
    type: TransactionType
    frequency: RecurringFrequency
    start_date: datetime
    next_due_date: datetime
    note: str = ""
    category_id: uuid.UUID | None = None
    end_date: datetime | None = None
    is_active: bool = True
    last_processed_date: datetime | None = None
    created_at: datetime | None = None

    def should_process(self, as_of: datetime) -> bool:
        if not self.is_active:
            return False
        if self.end_date is not None and as_of > self.end_date:
            return False
        return as_of >= self.next_due_date

    def calculate_next_due_date(self) -> datetime:
        return self.frequency.advance(self.next_due_date)

    def advanced(self) -> RecurringTransaction:
        """The template after one materialization of its current due date."""

        next_due = self.calculate_next_due_date()
        still_active = self.end_date is None or next_due <= self.end_date
        return replace(
            self,
            last_processed_date=self.next_due_date,
            next_due_date=next_due,
            is_active=self.is_active and still_active,
        )


@dataclass(frozen=True, slots=True)
class Wallet:
    id: uuid.UUID
    name: str
    icon: str = "creditcard.fill"
    color_hex: str = "#007AFF"
    balance: Decimal = Decimal(0)
    is_default: bool = False
    is_archived: bool = False
    sort_order: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Tag:
    id: uuid.UUID
    name: str
    color_hex: str = "#007AFF"
    usage_count: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SavingsGoal:
    id: uuid.UUID
    name: str
    target_amount: Decimal
    current_amount: Decimal = Decimal(0)
    deadline: datetime | None = None
    icon: str = "target"
    color_hex: str = "#007AFF"
    note: str = ""
    created_at: datetime | None = None
    is_completed: bool = False
    completed_at: datetime | None = None

    @property
    def progress(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(float(self.current_amount / self.target_amount), 1.0)

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.target_amount - self.current_amount, Decimal(0))

    def days_remaining(self, now: datetime) -> int | None:
        if self.deadline is None:
            return None
        return (self.deadline - now).days

    def daily_savings_needed(self, now: datetime) -> Decimal | None:
        days = self.days_remaining(now)
        if days is None or days <= 0:
            return None
        return self.remaining_amount / Decimal(days)

    def with_savings_added(self, amount: Decimal, now: datetime) -> SavingsGoal:
        current = self.current_amount + amount
        if current >= self.target_amount and not self.is_completed:
            return replace(self, current_amount=current, is_completed=True, completed_at=now)
        return replace(self, current_amount=current)

    def with_savings_withdrawn(self, amount: Decimal) -> SavingsGoal:
        current = max(self.current_amount - amount, Decimal(0))
        if self.is_completed and current < self.target_amount:
            return replace(self, current_amount=current, is_completed=False, completed_at=None)
        return replace(self, current_amount=current)


# ---------------------------------------------------------------------------
# Import / export records
# ---------------------------------------------------------------------------


class ImportRecord(BaseModel):
    """One transaction handed to ``Exchange.import_records``.

    Categories are referenced by name; the importer resolves or creates the
    category of the matching ``type``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    amount: Decimal
    type: TransactionType
    date: datetime
    note: str = ""
    category_name: str | None = None
    currency: Currency = Currency.KRW
    tag_names: tuple[str, ...] = ()
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None

    @field_validator("amount")
    @classmethod
    def _amount_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be greater than zero")
        return v

    @field_validator("category_name", "location_name")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        s = " ".join(v.split())
        return s or None

    @model_validator(mode="after")
    def _location_all_or_nothing(self) -> ImportRecord:
        parts = (self.latitude, self.longitude, self.location_name)
        if any(p is not None for p in parts) and not all(p is not None for p in parts):
            raise ValueError("latitude, longitude and location_name must be given together")
        return self

    @property
    def location(self) -> GeoLocation | None:
        if self.latitude is None or self.longitude is None or self.location_name is None:
            return None
        return GeoLocation(self.latitude, self.longitude, self.location_name)


class ExportRecord(ImportRecord):
    """A ledger transaction with its references resolved to names."""

    id: uuid.UUID
    wallet_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "Budget",
    "BudgetPeriod",
    "Category",
    "Currency",
    "ExportRecord",
    "GeoLocation",
    "ImportRecord",
    "RecurringFrequency",
    "RecurringTransaction",
    "SavingsGoal",
    "Tag",
    "Transaction",
    "TransactionType",
    "Wallet",
]
