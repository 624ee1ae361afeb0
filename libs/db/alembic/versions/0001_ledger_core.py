# ruff: noqa: I001
"""Ledger core tables: categories, wallets, transactions, budgets, recurring
templates, tags and savings goals.

Money columns are plain decimal strings (``db.models.ledger.Money``); their
range checks cast to NUMERIC.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    # ledger_categories
    op.create_table(
        "ledger_categories",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("icon", sa.String(), nullable=False, server_default=sa.text("''")),
        sa.Column("color_hex", sa.String(), nullable=False, server_default=sa.text("'#8E8E93'")),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("type in ('income','expense')", name="ck_ledger_category_type"),
    )
    op.create_index("ix_ledger_categories_type_sort", "ledger_categories", ["type", "sort_order"])

    # ledger_wallets
    op.create_table(
        "ledger_wallets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "icon", sa.String(), nullable=False, server_default=sa.text("'creditcard.fill'")
        ),
        sa.Column("color_hex", sa.String(), nullable=False, server_default=sa.text("'#007AFF'")),
        sa.Column("balance", sa.String(), nullable=False, server_default=sa.text("'0'")),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
    )

    # ledger_transactions
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("amount", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column(
            "category_id", sa.Uuid(), sa.ForeignKey("ledger_categories.id"), nullable=True
        ),
        sa.Column("wallet_id", sa.Uuid(), sa.ForeignKey("ledger_wallets.id"), nullable=True),
        sa.Column("note", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("currency_code", sa.CHAR(3), nullable=False, server_default=sa.text("'KRW'")),
        sa.Column("receipt_image", sa.LargeBinary(), nullable=True),
        sa.Column("tag_names", sa.JSON(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("location_name", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("CAST(amount AS NUMERIC) > 0", name="ck_ledger_tx_amount_positive"),
        sa.CheckConstraint("type in ('income','expense')", name="ck_ledger_tx_type"),
        sa.CheckConstraint(
            (
                "(latitude IS NULL AND longitude IS NULL AND location_name IS NULL) OR "
                "(latitude IS NOT NULL AND longitude IS NOT NULL AND location_name IS NOT NULL)"
            ),
            name="ck_ledger_tx_location_all_or_nothing",
        ),
    )
    op.create_index("ix_ledger_transactions_date", "ledger_transactions", ["date"])
    op.create_index("ix_ledger_transactions_category", "ledger_transactions", ["category_id"])

    # ledger_budgets
    op.create_table(
        "ledger_budgets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("amount", sa.String(), nullable=False),
        sa.Column("period", sa.String(), nullable=False, server_default=sa.text("'monthly'")),
        sa.Column(
            "category_id", sa.Uuid(), sa.ForeignKey("ledger_categories.id"), nullable=True
        ),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.CheckConstraint("CAST(amount AS NUMERIC) >= 0", name="ck_ledger_budget_amount"),
        sa.CheckConstraint(
            "period in ('weekly','monthly','yearly')", name="ck_ledger_budget_period"
        ),
    )

    # ledger_recurring_transactions
    op.create_table(
        "ledger_recurring_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("amount", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column(
            "category_id", sa.Uuid(), sa.ForeignKey("ledger_categories.id"), nullable=True
        ),
        sa.Column("note", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("frequency", sa.String(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("next_due_date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_processed_date", sa.DateTime(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "CAST(amount AS NUMERIC) > 0", name="ck_ledger_recurring_amount_positive"
        ),
        sa.CheckConstraint("type in ('income','expense')", name="ck_ledger_recurring_type"),
        sa.CheckConstraint(
            "frequency in ('daily','weekly','biweekly','monthly','yearly')",
            name="ck_ledger_recurring_frequency",
        ),
    )
    op.create_index(
        "ix_ledger_recurring_due",
        "ledger_recurring_transactions",
        ["is_active", "next_due_date"],
    )

    # ledger_tags
    op.create_table(
        "ledger_tags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("color_hex", sa.String(), nullable=False, server_default=sa.text("'#007AFF'")),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
    )

    # ledger_savings_goals
    op.create_table(
        "ledger_savings_goals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("target_amount", sa.String(), nullable=False),
        sa.Column(
            "current_amount", sa.String(), nullable=False, server_default=sa.text("'0'")
        ),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column("icon", sa.String(), nullable=False, server_default=sa.text("'target'")),
        sa.Column("color_hex", sa.String(), nullable=False, server_default=sa.text("'#007AFF'")),
        sa.Column("note", sa.Text(), nullable=False, server_default=sa.text("''")),
        _created_at(),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("CAST(target_amount AS NUMERIC) >= 0", name="ck_ledger_goal_target"),
        sa.CheckConstraint("CAST(current_amount AS NUMERIC) >= 0", name="ck_ledger_goal_current"),
    )


def downgrade() -> None:
    op.drop_table("ledger_savings_goals")
    op.drop_table("ledger_tags")
    op.drop_index("ix_ledger_recurring_due", table_name="ledger_recurring_transactions")
    op.drop_table("ledger_recurring_transactions")
    op.drop_table("ledger_budgets")
    op.drop_index("ix_ledger_transactions_category", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_date", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_table("ledger_wallets")
    op.drop_index("ix_ledger_categories_type_sort", table_name="ledger_categories")
    op.drop_table("ledger_categories")
