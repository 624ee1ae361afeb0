"""Category repository and default-category seeding.

Categories are typed (income or expense) and ordered per type by
``sort_order``, assigned as ``max(existing of that type) + 1`` (the first one
gets 0). Deleting a category keeps its transactions and recurring templates
(their reference is nulled) and removes the budget scoped to it.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from db.models.ledger import (
    LedgerBudget,
    LedgerCategory,
    LedgerRecurringTransaction,
    LedgerTransaction,
)

from .errors import InvalidData, NotFound
from .logging_setup import get_logger
from .models import Category, TransactionType
from .storage import Repository, to_category
from .transactions import coerce_type

logger = get_logger(__name__)

# (name, icon, color) in display order.
DEFAULT_EXPENSE_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("Food", "fork.knife", "#FF9500"),
    ("Shopping", "bag.fill", "#FF2D55"),
    ("Transport", "car.fill", "#34C759"),
    ("Housing", "house.fill", "#AF52DE"),
    ("Telecom", "phone.fill", "#5856D6"),
    ("Medical", "cross.case.fill", "#FF3B30"),
    ("Education", "book.fill", "#007AFF"),
    ("Entertainment", "gamecontroller.fill", "#FFCC00"),
    ("Other", "ellipsis.circle.fill", "#8E8E93"),
)

DEFAULT_INCOME_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("Salary", "banknote.fill", "#34C759"),
    ("Side Income", "plus.circle.fill", "#007AFF"),
    ("Investment", "chart.line.uptrend.xyaxis", "#FF9500"),
    ("Other", "ellipsis.circle.fill", "#8E8E93"),
)


def normalize_name(name: str) -> str:
    """Trim and collapse internal whitespace; case is preserved."""

    return " ".join(name.strip().split())


def _validated_name(name: str) -> str:
    n = normalize_name(name or "")
    if not n:
        raise InvalidData("category name cannot be empty")
    if len(n) > 64:
        raise InvalidData("category name must be at most 64 characters")
    return n


def next_sort_order(session: Session, tx_type: TransactionType) -> int:
    current = session.scalar(
        select(func.max(LedgerCategory.sort_order)).where(LedgerCategory.type == tx_type.value)
    )
    return 0 if current is None else current + 1


def find_by_name(session: Session, name: str, tx_type: TransactionType) -> LedgerCategory | None:
    """Case-insensitive lookup of a category by ``(name, type)``."""

    wanted = normalize_name(name).casefold()
    rows = session.scalars(
        select(LedgerCategory)
        .where(LedgerCategory.type == tx_type.value)
        .order_by(LedgerCategory.sort_order)
    ).all()
    for row in rows:
        if row.name.casefold() == wanted:
            return row
    return None


def insert_category(
    session: Session,
    *,
    name: str,
    type: TransactionType | str,
    icon: str = "",
    color_hex: str = "#8E8E93",
    is_default: bool = False,
) -> LedgerCategory:
    tx_type = coerce_type(type)
    row = LedgerCategory(
        id=uuid.uuid4(),
        name=_validated_name(name),
        icon=icon,
        color_hex=color_hex,
        type=tx_type.value,
        is_default=is_default,
        sort_order=next_sort_order(session, tx_type),
    )
    session.add(row)
    session.flush()
    return row


class CategoryRepository(Repository):
    def create(
        self,
        name: str,
        type: TransactionType | str,
        *,
        icon: str = "",
        color_hex: str = "#8E8E93",
        is_default: bool = False,
    ) -> Category:
        with self._saving("create category") as session:
            row = insert_category(
                session,
                name=name,
                type=type,
                icon=icon,
                color_hex=color_hex,
                is_default=is_default,
            )
            return to_category(row)

    def update(
        self,
        category_id: uuid.UUID,
        *,
        name: str | None = None,
        icon: str | None = None,
        color_hex: str | None = None,
    ) -> Category:
        with self._saving("update category") as session:
            row = session.get(LedgerCategory, category_id)
            if row is None:
                raise NotFound("category", category_id)
            if name is not None:
                row.name = _validated_name(name)
            if icon is not None:
                row.icon = icon
            if color_hex is not None:
                row.color_hex = color_hex
            session.flush()
            return to_category(row)

    def delete(self, category: Category | uuid.UUID) -> None:
        """Delete a category, nulling references and removing its budget.

        All three effects commit together or not at all.
        """

        category_id = category.id if isinstance(category, Category) else category
        with self._deleting("delete category") as session:
            row = session.get(LedgerCategory, category_id)
            if row is None:
                raise NotFound("category", category_id)
            session.execute(
                update(LedgerTransaction)
                .where(LedgerTransaction.category_id == category_id)
                .values(category_id=None)
            )
            session.execute(
                update(LedgerRecurringTransaction)
                .where(LedgerRecurringTransaction.category_id == category_id)
                .values(category_id=None)
            )
            session.execute(delete(LedgerBudget).where(LedgerBudget.category_id == category_id))
            session.delete(row)
        logger.info("deleted category %s", category_id)

    def get(self, category_id: uuid.UUID) -> Category:
        with self._reading("get category") as session:
            row = session.get(LedgerCategory, category_id)
            if row is None:
                raise NotFound("category", category_id)
            return to_category(row)

    def fetch_all(self, type: TransactionType | str | None = None) -> list[Category]:
        stmt = select(LedgerCategory).order_by(LedgerCategory.type, LedgerCategory.sort_order)
        if type is not None:
            stmt = stmt.where(LedgerCategory.type == coerce_type(type).value)
        with self._reading("fetch categories") as session:
            return [to_category(r) for r in session.scalars(stmt).all()]

    def find(self, name: str, type: TransactionType | str) -> Category | None:
        with self._reading("find category") as session:
            row = find_by_name(session, name, coerce_type(type))
            return to_category(row) if row is not None else None

    def seed_defaults(self) -> int:
        """Insert the default categories unless defaults already exist.

        Returns the number of categories created (0 when already seeded).
        """

        with self._saving("seed default categories") as session:
            existing = session.scalar(
                select(func.count()).select_from(LedgerCategory).where(LedgerCategory.is_default)
            )
            if existing:
                return 0
            created = 0
            for tx_type, defaults in (
                (TransactionType.EXPENSE, DEFAULT_EXPENSE_CATEGORIES),
                (TransactionType.INCOME, DEFAULT_INCOME_CATEGORIES),
            ):
                for name, icon, color in defaults:
                    insert_category(
                        session,
                        name=name,
                        type=tx_type,
                        icon=icon,
                        color_hex=color,
                        is_default=True,
                    )
                    created += 1
        logger.info("seeded %d default categories", created)
        return created


__all__ = [
    "DEFAULT_EXPENSE_CATEGORIES",
    "DEFAULT_INCOME_CATEGORIES",
    "CategoryRepository",
    "find_by_name",
    "insert_category",
    "next_sort_order",
    "normalize_name",
]
