"""db: embedded storage library for the ledger (SQLAlchemy/Alembic/SQLite).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.ledger`` (re-exported for convenience)
- The ``Database`` client in ``db.client``
"""

from __future__ import annotations

from .client import Database
from .models.ledger import (
    Base,
    LedgerBudget,
    LedgerCategory,
    LedgerLearnedKeyword,
    LedgerRecurringTransaction,
    LedgerSavingsGoal,
    LedgerTag,
    LedgerTransaction,
    LedgerWallet,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "Database",
    "metadata",
    "LedgerBudget",
    "LedgerCategory",
    "LedgerLearnedKeyword",
    "LedgerRecurringTransaction",
    "LedgerSavingsGoal",
    "LedgerTag",
    "LedgerTransaction",
    "LedgerWallet",
]
