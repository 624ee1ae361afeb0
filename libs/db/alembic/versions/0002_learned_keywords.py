# ruff: noqa: I001
"""Add learned note keywords for category suggestions.

Revision ID: 0002_learned_keywords
Revises: 0001_ledger_core
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_learned_keywords"
down_revision: str | None = "0001_ledger_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_learned_keywords",
        sa.Column("keyword", sa.String(), primary_key=True),
        sa.Column("category_icon", sa.String(), nullable=False),
        sa.Column("learned_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("ledger_learned_keywords")
