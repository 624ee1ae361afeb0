"""Repository plumbing shared by every ledger repository.

``Repository._session`` is the single place where the access gate is taken,
a ``session_scope`` is opened, and ``SQLAlchemyError`` is translated into the
``LedgerError`` taxonomy. The ``to_*`` converters turn ORM rows into the
immutable domain values returned to callers.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.ledger import (
    LedgerBudget,
    LedgerCategory,
    LedgerRecurringTransaction,
    LedgerSavingsGoal,
    LedgerTag,
    LedgerTransaction,
    LedgerWallet,
)

from .config import LedgerContext
from .errors import DeleteFailed, FetchFailed, SaveFailed
from .logging_setup import get_logger
from .models import (
    Budget,
    BudgetPeriod,
    Category,
    Currency,
    GeoLocation,
    RecurringFrequency,
    RecurringTransaction,
    SavingsGoal,
    Tag,
    Transaction,
    TransactionType,
    Wallet,
)

logger = get_logger(__name__)

_FailureType = type[SaveFailed] | type[FetchFailed] | type[DeleteFailed]


class Repository:
    """Base for repositories bound to one ``LedgerContext``."""

    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx

    @contextmanager
    def _session(self, action: str, *, failure: _FailureType) -> Iterator[Session]:
        gate = self.ctx.gate.reading() if failure is FetchFailed else self.ctx.gate.writing()
        with gate:
            try:
                with self.ctx.database.session_scope() as session:
                    yield session
            except SQLAlchemyError as exc:
                logger.error("%s failed", action, exc_info=exc)
                raise failure(exc, action) from exc

    def _reading(self, action: str):
        return self._session(action, failure=FetchFailed)

    def _saving(self, action: str):
        return self._session(action, failure=SaveFailed)

    def _deleting(self, action: str):
        return self._session(action, failure=DeleteFailed)


# ---------------------------
# Row -> domain converters
# ---------------------------


def to_transaction(row: LedgerTransaction) -> Transaction:
    location = None
    if row.latitude is not None and row.longitude is not None and row.location_name is not None:
        location = GeoLocation(row.latitude, row.longitude, row.location_name)
    return Transaction(
        id=row.id,
        amount=row.amount,
        type=TransactionType(row.type),
        date=row.date,
        note=row.note or "",
        category_id=row.category_id,
        currency=Currency(row.currency_code),
        created_at=row.created_at,
        updated_at=row.updated_at,
        receipt_image=row.receipt_image,
        tag_names=tuple(row.tag_names or ()),
        location=location,
        wallet_id=row.wallet_id,
    )


def to_category(row: LedgerCategory) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        type=TransactionType(row.type),
        icon=row.icon,
        color_hex=row.color_hex,
        is_default=bool(row.is_default),
        sort_order=row.sort_order,
    )


def to_budget(row: LedgerBudget) -> Budget:
    return Budget(
        id=row.id,
        amount=row.amount,
        period=BudgetPeriod(row.period),
        start_date=row.start_date,
        category_id=row.category_id,
    )


def to_recurring(row: LedgerRecurringTransaction) -> RecurringTransaction:
    return RecurringTransaction(
        id=row.id,
        amount=row.amount,
        type=TransactionType(row.type),
        frequency=RecurringFrequency(row.frequency),
        start_date=row.start_date,
        next_due_date=row.next_due_date,
        note=row.note or "",
        category_id=row.category_id,
        end_date=row.end_date,
        is_active=bool(row.is_active),
        last_processed_date=row.last_processed_date,
        created_at=row.created_at,
    )


def to_wallet(row: LedgerWallet) -> Wallet:
    return Wallet(
        id=row.id,
        name=row.name,
        icon=row.icon,
        color_hex=row.color_hex,
        balance=row.balance,
        is_default=bool(row.is_default),
        is_archived=bool(row.is_archived),
        sort_order=row.sort_order,
        created_at=row.created_at,
    )


def to_tag(row: LedgerTag) -> Tag:
    return Tag(
        id=row.id,
        name=row.name,
        color_hex=row.color_hex,
        usage_count=row.usage_count,
        created_at=row.created_at,
    )


def to_savings_goal(row: LedgerSavingsGoal) -> SavingsGoal:
    return SavingsGoal(
        id=row.id,
        name=row.name,
        target_amount=row.target_amount,
        current_amount=row.current_amount,
        deadline=row.deadline,
        icon=row.icon,
        color_hex=row.color_hex,
        note=row.note or "",
        created_at=row.created_at,
        is_completed=bool(row.is_completed),
        completed_at=row.completed_at,
    )


__all__ = [
    "Repository",
    "to_budget",
    "to_category",
    "to_recurring",
    "to_savings_goal",
    "to_tag",
    "to_transaction",
    "to_wallet",
]
