"""Public entrypoint: ``LedgerEngine`` wires config, storage and repositories.

Typical use::

    from ledger_engine import LedgerConfig, LedgerEngine

    engine = LedgerEngine.open(LedgerConfig.from_env())
    engine.categories.seed_defaults()
    engine.ledger.create(4500, "expense", note="coffee")
    engine.recurring.process_all_due()
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from .analytics import InsightPeriod
from .budgets import BudgetRepository, BudgetStatus
from .categories import CategoryRepository
from .config import LedgerConfig, LedgerContext
from .exchange import Exchange
from .insights import InsightsReport, InsightsRunner, InsightsService
from .models import Budget, RecurringTransaction, Transaction, TransactionType
from .peripherals import SavingsGoalRepository, TagRepository, WalletRepository
from .recurring import RecurringRepository, project_recurring
from .suggestions import SuggestionRepository
from .transactions import LedgerRepository


class LedgerEngine:
    """All repositories of one ledger, sharing one context and access gate."""

    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx
        self.ledger = LedgerRepository(ctx)
        self.categories = CategoryRepository(ctx)
        self.budgets = BudgetRepository(ctx)
        self.recurring = RecurringRepository(ctx)
        self.wallets = WalletRepository(ctx)
        self.tags = TagRepository(ctx)
        self.savings_goals = SavingsGoalRepository(ctx)
        self.suggestions = SuggestionRepository(ctx)
        self.exchange = Exchange(self.ledger)
        self.insights = InsightsService(self.ledger)

    @classmethod
    def open(
        cls, config: LedgerConfig | None = None, *, create_schema: bool = True
    ) -> LedgerEngine:
        config = config or LedgerConfig.from_env()
        return cls(LedgerContext.open(config, create_schema=create_schema))

    @property
    def config(self) -> LedgerConfig:
        return self.ctx.config

    def close(self) -> None:
        self.ctx.database.dispose()

    def __enter__(self) -> LedgerEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---- conveniences spanning several repositories -------------------------

    def budget_overview(self, *, now: datetime | None = None) -> list[tuple[Budget, BudgetStatus]]:
        """Every budget with its status for the current period."""

        return [(b, self.budgets.evaluate(b, now=now)) for b in self.budgets.fetch_all()]

    def record(
        self, amount: Any, type: TransactionType | str, *, note: str = "", **fields: Any
    ) -> Transaction:
        """Create a transaction, filling in a suggested category when none is given.

        An explicit ``category_id`` is learned from: the words of ``note`` become
        keywords for that category.
        """

        category_id = fields.pop("category_id", None)
        chosen = category_id is not None
        if not chosen and note:
            suggested = self.suggestions.suggest(note, type)
            category_id = suggested.id if suggested is not None else None
        tx = self.ledger.create(amount, type, category_id=category_id, note=note, **fields)
        if chosen and note:
            self.suggestions.learn_from_selection(note, category_id)
        return tx

    def project_recurring(self, start: datetime, end: datetime) -> list[Transaction]:
        templates: list[RecurringTransaction] = self.recurring.fetch_active()
        return project_recurring(
            templates,
            start,
            end,
            self.config.default_currency,
            label=self.config.auto_generated_label,
        )

    def insights_report(
        self, period: InsightPeriod | int = InsightPeriod.THREE_MONTHS
    ) -> InsightsReport:
        return self.insights.build_report(period)

    def insights_runner(
        self, on_result: Callable[[InsightsReport], None] | None = None
    ) -> InsightsRunner:
        return InsightsRunner(
            self.insights, max_workers=self.config.insights_workers, on_result=on_result
        )


__all__ = ["LedgerEngine"]
