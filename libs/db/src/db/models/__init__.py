"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger domain models used by ``ledger_engine``.
"""

from .ledger import (
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

__all__ = [
    "Base",
    "LedgerBudget",
    "LedgerCategory",
    "LedgerLearnedKeyword",
    "LedgerRecurringTransaction",
    "LedgerSavingsGoal",
    "LedgerTag",
    "LedgerTransaction",
    "LedgerWallet",
]
