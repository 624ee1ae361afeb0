"""ledger_engine: ledger, budgets, recurring schedule and insights.

The engine persists transactions through the ``db`` storage library, keeps
budgets and recurring templates, and derives analytics from the history. Use
:class:`LedgerEngine` as the entrypoint.
"""

from __future__ import annotations

from .analytics import BudgetPrediction, InsightPeriod
from .api import LedgerEngine
from .budgets import BudgetStatus, StatusKind, budget_status, threshold_crossing
from .config import LedgerConfig, LedgerContext
from .errors import DeleteFailed, FetchFailed, InvalidData, LedgerError, NotFound, SaveFailed
from .gate import AccessGate
from .insights import InsightsReport, InsightsRunner, InsightsService
from .models import (
    Budget,
    BudgetPeriod,
    Category,
    Currency,
    ExportRecord,
    GeoLocation,
    ImportRecord,
    RecurringFrequency,
    RecurringTransaction,
    SavingsGoal,
    Tag,
    Transaction,
    TransactionType,
    Wallet,
)

__all__ = [
    "AccessGate",
    "Budget",
    "BudgetPeriod",
    "BudgetPrediction",
    "BudgetStatus",
    "Category",
    "Currency",
    "DeleteFailed",
    "ExportRecord",
    "FetchFailed",
    "GeoLocation",
    "ImportRecord",
    "InsightPeriod",
    "InsightsReport",
    "InsightsRunner",
    "InsightsService",
    "InvalidData",
    "LedgerConfig",
    "LedgerContext",
    "LedgerEngine",
    "LedgerError",
    "NotFound",
    "RecurringFrequency",
    "RecurringTransaction",
    "SaveFailed",
    "SavingsGoal",
    "StatusKind",
    "Tag",
    "Transaction",
    "TransactionType",
    "Wallet",
    "budget_status",
    "threshold_crossing",
]
