"""Insights reports and their background runner.

``InsightsService`` fetches the analysis window once through the ledger
repository and folds it into an ``InsightsReport`` using the pure functions in
``ledger_engine.analytics``.

``InsightsRunner`` computes reports on a ``ThreadPoolExecutor`` and applies
last-request-wins delivery: every ``request`` supersedes the previous one, a
superseded computation stops at its next stage boundary, and its future ends
up cancelled instead of carrying a stale report.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from . import analytics, dates
from .analytics import (
    BudgetPrediction,
    CategorySpending,
    CategoryTrend,
    DetectedRecurringPattern,
    InsightPeriod,
    SpendingByDayOfWeek,
    SpendingByHour,
    SpendingTrend,
    TopExpense,
)
from .logging_setup import get_logger
from .models import Budget
from .transactions import LedgerRepository

logger = get_logger(__name__)


class ReportCancelled(Exception):
    """Raised inside a report computation that was superseded or cancelled."""


@dataclass(frozen=True, slots=True)
class InsightsReport:
    period: InsightPeriod
    generated_at: datetime
    window_start: datetime
    window_end: datetime
    total_income: Decimal
    total_expense: Decimal
    trends: tuple[SpendingTrend, ...]
    category_breakdown: tuple[CategorySpending, ...]
    category_trends: tuple[CategoryTrend, ...]
    top_expenses: tuple[TopExpense, ...]
    by_day_of_week: tuple[SpendingByDayOfWeek, ...]
    by_hour: tuple[SpendingByHour, ...]
    recurring_patterns: tuple[DetectedRecurringPattern, ...]

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense


def _never() -> bool:
    return False


class InsightsService:
    def __init__(
        self,
        ledger: LedgerRepository,
        *,
        top_expense_limit: int = 10,
        min_pattern_confidence: float = 0.0,
    ) -> None:
        self._ledger = ledger
        self._top_expense_limit = top_expense_limit
        self._min_pattern_confidence = min_pattern_confidence

    def build_report(
        self,
        period: InsightPeriod | int,
        *,
        now: datetime | None = None,
        should_stop: Callable[[], bool] = _never,
    ) -> InsightsReport:
        """Compute every insight for ``period`` ending at ``now``.

        ``should_stop`` is polled between stages; when it returns true the
        computation raises ``ReportCancelled``.
        """

        period = InsightPeriod(period)
        now = now or self._ledger.ctx.now()
        window_start = period.start_date(now)
        # Category trends look back whole months from the current month start.
        fetch_start = min(
            window_start, dates.start_of_month(now) - relativedelta(months=period.month_count)
        )

        def checkpoint() -> None:
            if should_stop():
                raise ReportCancelled(f"insights for {period.month_count} months superseded")

        checkpoint()
        history = self._ledger.fetch_range(fetch_start, now)
        window = [tx for tx in history if window_start <= tx.date <= now]

        checkpoint()
        trends = analytics.monthly_trends(history, months=period.month_count, now=now)
        breakdown = analytics.category_breakdown(window)
        cat_trends = analytics.category_trends(history, months=period.month_count, now=now)

        checkpoint()
        top = analytics.top_expenses(window, limit=self._top_expense_limit)
        by_dow = analytics.spending_by_day_of_week(window)
        by_hour = analytics.spending_by_hour(window)

        checkpoint()
        patterns = analytics.detect_recurring_patterns(
            window, min_confidence=self._min_pattern_confidence
        )

        income = sum((tx.amount for tx in window if tx.is_income), Decimal(0))
        expense = sum((tx.amount for tx in window if tx.is_expense), Decimal(0))
        return InsightsReport(
            period=period,
            generated_at=now,
            window_start=window_start,
            window_end=now,
            total_income=income,
            total_expense=expense,
            trends=tuple(trends),
            category_breakdown=tuple(breakdown),
            category_trends=tuple(cat_trends),
            top_expenses=tuple(top),
            by_day_of_week=tuple(by_dow),
            by_hour=tuple(by_hour),
            recurring_patterns=tuple(patterns),
        )

    def predict_budget(self, budget: Budget, *, now: datetime | None = None) -> BudgetPrediction:
        now = now or self._ledger.ctx.now()
        start, end = budget.current_period_dates(now)
        return analytics.predict_budget(budget, self._ledger.fetch_range(start, end), now=now)


class InsightsRunner:
    """Run ``InsightsService.build_report`` in the background, newest request wins.

    Parameters
    ----------
    service:
        The service that computes reports.
    max_workers:
        Size of the worker pool (``LedgerConfig.insights_workers``).
    on_result:
        Optional callback invoked on the worker thread with every report that
        is actually delivered (never with superseded ones).
    """

    def __init__(
        self,
        service: InsightsService,
        *,
        max_workers: int = 1,
        on_result: Callable[[InsightsReport], None] | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self._service = service
        self._on_result = on_result
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ledger-insights"
        )
        self._lock = threading.Lock()
        self._generation = 0
        self._current: Future[InsightsReport] | None = None
        self._closed = False

    # ---- public API ---------------------------------------------------------

    def request(
        self, period: InsightPeriod | int, *, now: datetime | None = None
    ) -> Future[InsightsReport]:
        """Schedule a report and supersede any request still in flight."""

        outer: Future[InsightsReport] = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("InsightsRunner has been shut down")
            self._generation += 1
            generation = self._generation
            previous, self._current = self._current, outer
        if previous is not None and previous.cancel():
            logger.debug("insights request %d superseded", generation - 1)
        self._executor.submit(self._run, generation, outer, InsightPeriod(period), now)
        return outer

    def cancel(self) -> bool:
        """Best-effort cancellation of the request in flight, if any."""

        with self._lock:
            self._generation += 1
            previous, self._current = self._current, None
        return previous.cancel() if previous is not None else False

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> InsightsRunner:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ---- worker side --------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _run(
        self,
        generation: int,
        outer: Future[InsightsReport],
        period: InsightPeriod,
        now: datetime | None,
    ) -> None:
        def superseded() -> bool:
            return outer.cancelled() or not self._is_current(generation)

        try:
            report = self._service.build_report(period, now=now, should_stop=superseded)
        except ReportCancelled:
            outer.cancel()
            logger.debug("insights request %d stopped early", generation)
            return
        except Exception as exc:
            logger.error("insights request %d failed", generation, exc_info=exc)
            with self._lock:
                if self._is_current(generation) and outer.set_running_or_notify_cancel():
                    outer.set_exception(exc)
                else:
                    outer.cancel()
            return

        with self._lock:
            delivered = self._is_current(generation) and outer.set_running_or_notify_cancel()
            if delivered:
                outer.set_result(report)
            else:
                outer.cancel()
        if not delivered:
            logger.debug("insights request %d discarded", generation)
            return
        if self._on_result is not None:
            self._on_result(report)


__all__ = [
    "InsightsReport",
    "InsightsRunner",
    "InsightsService",
    "ReportCancelled",
]
