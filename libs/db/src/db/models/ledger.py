from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    TypeDecorator,
    Uuid,
    false,
    func,
    text,
    true,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Money(TypeDecorator[Decimal]):
    """Exact decimal amount stored as its plain-notation string.

    SQLite has no decimal storage class and ``Numeric`` reads back through
    ``float`` there, so amounts keep every digit as text instead.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | int | str | None, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return format(Decimal(value), "f")

    def process_result_value(self, value: str | None, dialect: Dialect) -> Decimal | None:
        return None if value is None else Decimal(value)


# ---------------------------
# Reference: ledger_categories
# ---------------------------


class LedgerCategory(Base):
    __tablename__ = "ledger_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    icon: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    color_hex: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'#8E8E93'"))
    # A category is valid for exactly one transaction direction.
    type: Mapped[str] = mapped_column(String, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    # Unique per type; assigned as max(existing) + 1 by the repository, not by
    # a DB sequence.
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_ledger_category_type"),
        Index("ix_ledger_categories_type_sort", "type", "sort_order"),
    )


# ---------------------------
# Reference: ledger_wallets
# ---------------------------


class LedgerWallet(Base):
    __tablename__ = "ledger_wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    icon: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'creditcard.fill'")
    )
    color_hex: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'#007AFF'"))
    balance: Mapped[Decimal] = mapped_column(
        Money, nullable=False, server_default=text("'0'")
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Always strictly positive; the sign is derived from ``type``.
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    # Weak references: lookups only. Deleting the referenced row nulls these
    # columns in the repository before the delete is issued.
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ledger_categories.id"), nullable=True
    )
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ledger_wallets.id"), nullable=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    # Economic date (with time of day), distinct from created_at.
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    currency_code: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'KRW'")
    )
    receipt_image: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    tag_names: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_ledger_tx_amount_positive"),
        CheckConstraint("type in ('income','expense')", name="ck_ledger_tx_type"),
        CheckConstraint(
            (
                "(latitude IS NULL AND longitude IS NULL AND location_name IS NULL) OR "
                "(latitude IS NOT NULL AND longitude IS NOT NULL AND location_name IS NOT NULL)"
            ),
            name="ck_ledger_tx_location_all_or_nothing",
        ),
        Index("ix_ledger_transactions_date", "date"),
        Index("ix_ledger_transactions_category", "category_id"),
    )


# ---------------------------
# ledger_budgets
# ---------------------------


class LedgerBudget(Base):
    __tablename__ = "ledger_budgets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    period: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'monthly'"))
    # NULL denotes the single process-wide "total" budget. At most one budget
    # per category (and one total) is enforced in the service layer.
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ledger_categories.id"), nullable=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("CAST(amount AS NUMERIC) >= 0", name="ck_ledger_budget_amount"),
        CheckConstraint(
            "period in ('weekly','monthly','yearly')", name="ck_ledger_budget_period"
        ),
    )


# ---------------------------
# ledger_recurring_transactions
# ---------------------------


class LedgerRecurringTransaction(Base):
    __tablename__ = "ledger_recurring_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ledger_categories.id"), nullable=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    frequency: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=true())
    last_processed_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_ledger_recurring_amount_positive"),
        CheckConstraint("type in ('income','expense')", name="ck_ledger_recurring_type"),
        CheckConstraint(
            "frequency in ('daily','weekly','biweekly','monthly','yearly')",
            name="ck_ledger_recurring_frequency",
        ),
        Index("ix_ledger_recurring_due", "is_active", "next_due_date"),
    )


# ---------------------------
# Peripheral: tags and savings goals
# ---------------------------


class LedgerTag(Base):
    __tablename__ = "ledger_tags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    color_hex: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'#007AFF'"))
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )


class LedgerSavingsGoal(Base):
    __tablename__ = "ledger_savings_goals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    current_amount: Mapped[Decimal] = mapped_column(
        Money, nullable=False, server_default=text("'0'")
    )
    deadline: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    icon: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'target'"))
    color_hex: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'#007AFF'"))
    note: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("CAST(target_amount AS NUMERIC) >= 0", name="ck_ledger_goal_target"),
        CheckConstraint("CAST(current_amount AS NUMERIC) >= 0", name="ck_ledger_goal_current"),
    )


# ---------------------------
# ledger_learned_keywords
# ---------------------------


class LedgerLearnedKeyword(Base):
    __tablename__ = "ledger_learned_keywords"

    # Lower-cased word taken from a transaction note.
    keyword: Mapped[str] = mapped_column(String, primary_key=True)
    # Resolved against whichever category currently carries this icon.
    category_icon: Mapped[str] = mapped_column(String, nullable=False)
    learned_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )


__all__ = [
    "Base",
    "Money",
    "LedgerBudget",
    "LedgerCategory",
    "LedgerLearnedKeyword",
    "LedgerRecurringTransaction",
    "LedgerSavingsGoal",
    "LedgerTag",
    "LedgerTransaction",
    "LedgerWallet",
]
