"""Budget evaluation and the budget repository.

``budget_status`` is a pure function of a budget and an amount spent; it never
raises and guards the zero-amount budget instead of dividing. The repository
keeps at most one budget per category and one total budget (category
``None``), computes spend over the budget's current period, and evaluates it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.ledger import LedgerBudget, LedgerCategory, LedgerTransaction

from . import query
from .errors import InvalidData, NotFound
from .models import Budget, BudgetPeriod, TransactionType
from .storage import Repository, to_budget
from .transactions import parse_decimal

DEFAULT_WARNING_THRESHOLD = Decimal(80)


class StatusKind(StrEnum):
    SAFE = "safe"
    WARNING = "warning"
    EXCEEDED = "exceeded"


@dataclass(frozen=True, slots=True)
class BudgetStatus:
    """Outcome of evaluating a budget against spend.

    ``remaining`` is negative only for ``EXCEEDED``, where ``overspent`` holds
    its absolute value; ``overspent`` is 0 otherwise.
    """

    kind: StatusKind
    remaining: Decimal
    percentage: float
    overspent: Decimal = Decimal(0)


def _amount_of(budget: Budget | Decimal | int) -> Decimal:
    return budget.amount if isinstance(budget, Budget) else Decimal(budget)


def budget_status(
    budget: Budget | Decimal | int,
    spent: Decimal | int,
    *,
    warning_threshold: Decimal | int = DEFAULT_WARNING_THRESHOLD,
) -> BudgetStatus:
    """Classify ``spent`` against ``budget`` as Safe, Warning or Exceeded.

    Parameters
    ----------
    budget:
        A :class:`Budget` or a bare amount.
    spent:
        Amount spent so far in the period.
    warning_threshold:
        Percentage at or above which the status is ``WARNING`` (default 80).
    """

    amount = _amount_of(budget)
    spent = Decimal(spent)
    remaining = amount - spent
    pct = spent / amount * 100 if amount > 0 else Decimal(0)

    if remaining < 0:
        return BudgetStatus(StatusKind.EXCEEDED, remaining, float(pct), overspent=-remaining)
    if pct >= Decimal(warning_threshold):
        return BudgetStatus(StatusKind.WARNING, remaining, float(pct))
    return BudgetStatus(StatusKind.SAFE, remaining, float(pct))


_SEVERITY = {StatusKind.SAFE: 0, StatusKind.WARNING: 1, StatusKind.EXCEEDED: 2}


def threshold_crossing(
    previous: BudgetStatus | None, current: BudgetStatus
) -> StatusKind | None:
    """Return the new kind when ``current`` moved into Warning or Exceeded.

    Staying in the same kind or improving yields ``None``; this is the event
    a notification collaborator alerts on.
    """

    before = _SEVERITY[previous.kind] if previous is not None else 0
    if current.kind is not StatusKind.SAFE and _SEVERITY[current.kind] > before:
        return current.kind
    return None


# ---------------------------
# Repository
# ---------------------------


def _find_budget(session: Session, category_id: uuid.UUID | None) -> LedgerBudget | None:
    stmt = select(LedgerBudget)
    if category_id is None:
        stmt = stmt.where(LedgerBudget.category_id.is_(None))
    else:
        stmt = stmt.where(LedgerBudget.category_id == category_id)
    return session.scalars(stmt.limit(1)).first()


def _coerce_budget_amount(raw: Any) -> Decimal:
    amount = parse_decimal(raw, "budget amount")
    if amount < 0:
        raise InvalidData(f"budget amount must be zero or more, got {raw!r}")
    return amount


def _coerce_period(raw: BudgetPeriod | str) -> BudgetPeriod:
    try:
        return BudgetPeriod(raw)
    except ValueError:
        raise InvalidData(f"unknown budget period: {raw!r}") from None


class BudgetRepository(Repository):
    def create(
        self,
        amount: Any,
        *,
        period: BudgetPeriod | str = BudgetPeriod.MONTHLY,
        category_id: uuid.UUID | None = None,
        start_date: datetime | None = None,
    ) -> Budget:
        value = _coerce_budget_amount(amount)
        budget_period = _coerce_period(period)
        with self._saving("create budget") as session:
            if category_id is not None:
                category = session.get(LedgerCategory, category_id)
                if category is None:
                    raise NotFound("category", category_id)
                if category.type != TransactionType.EXPENSE.value:
                    raise InvalidData("budgets can only track expense categories")
            if _find_budget(session, category_id) is not None:
                scope = "the total" if category_id is None else f"category {category_id}"
                raise InvalidData(f"a budget already exists for {scope}")
            row = LedgerBudget(
                id=uuid.uuid4(),
                amount=value,
                period=budget_period.value,
                category_id=category_id,
                start_date=start_date or self.ctx.now(),
            )
            session.add(row)
            session.flush()
            return to_budget(row)

    def update(
        self,
        budget_id: uuid.UUID,
        *,
        amount: Any = None,
        period: BudgetPeriod | str | None = None,
    ) -> Budget:
        with self._saving("update budget") as session:
            row = session.get(LedgerBudget, budget_id)
            if row is None:
                raise NotFound("budget", budget_id)
            if amount is not None:
                row.amount = _coerce_budget_amount(amount)
            if period is not None:
                row.period = _coerce_period(period).value
            session.flush()
            return to_budget(row)

    def delete(self, budget: Budget | uuid.UUID) -> None:
        budget_id = budget.id if isinstance(budget, Budget) else budget
        with self._deleting("delete budget") as session:
            row = session.get(LedgerBudget, budget_id)
            if row is None:
                raise NotFound("budget", budget_id)
            session.delete(row)

    def get(self, budget_id: uuid.UUID) -> Budget:
        with self._reading("get budget") as session:
            row = session.get(LedgerBudget, budget_id)
            if row is None:
                raise NotFound("budget", budget_id)
            return to_budget(row)

    def fetch_all(self) -> list[Budget]:
        with self._reading("fetch budgets") as session:
            rows = session.scalars(
                select(LedgerBudget).order_by(
                    LedgerBudget.category_id.is_not(None), LedgerBudget.start_date
                )
            ).all()
            return [to_budget(r) for r in rows]

    def fetch_total_budget(self) -> Budget | None:
        with self._reading("fetch total budget") as session:
            row = _find_budget(session, None)
            return to_budget(row) if row is not None else None

    def fetch_for_category(self, category_id: uuid.UUID) -> Budget | None:
        with self._reading("fetch category budget") as session:
            row = _find_budget(session, category_id)
            return to_budget(row) if row is not None else None

    def spent(self, budget: Budget, *, now: datetime | None = None) -> Decimal:
        """Expense total inside the budget's current period and scope."""

        start, end = budget.current_period_dates(now or self.ctx.now())
        stmt = select(LedgerTransaction.amount).where(
            query.date_between(start, end),
            LedgerTransaction.type == TransactionType.EXPENSE.value,
        )
        if budget.category_id is not None:
            stmt = stmt.where(LedgerTransaction.category_id == budget.category_id)
        with self._reading("budget spend") as session:
            return sum(session.scalars(stmt).all(), Decimal(0))

    def evaluate(self, budget: Budget, *, now: datetime | None = None) -> BudgetStatus:
        return budget_status(
            budget,
            self.spent(budget, now=now),
            warning_threshold=self.ctx.config.warning_threshold,
        )


__all__ = [
    "DEFAULT_WARNING_THRESHOLD",
    "BudgetRepository",
    "BudgetStatus",
    "StatusKind",
    "budget_status",
    "threshold_crossing",
]
