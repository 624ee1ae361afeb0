"""Pure analytics over a list of transactions.

Nothing here touches storage: every function takes already-fetched
``Transaction`` values (plus an explicit ``now`` where the calendar matters)
and returns immutable results. Divisions are guarded so degenerate input
(no transactions, zero budgets, a single month of history) produces zeros or
empty lists instead of errors.

Percentages are ``float``; money stays ``Decimal``. Amounts in different
currencies are summed as-is (there is no conversion).
"""

from __future__ import annotations

import statistics
import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import IntEnum

from dateutil.relativedelta import relativedelta

from . import dates
from .models import Budget, RecurringFrequency, Transaction, TransactionType

ZERO = Decimal(0)

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class InsightPeriod(IntEnum):
    THREE_MONTHS = 3
    SIX_MONTHS = 6
    TWELVE_MONTHS = 12

    @property
    def month_count(self) -> int:
        return int(self.value)

    def start_date(self, now: datetime) -> datetime:
        return now - relativedelta(months=self.month_count)


@dataclass(frozen=True, slots=True)
class SpendingTrend:
    label: str
    income: Decimal
    expense: Decimal
    balance: Decimal
    date: datetime
    change_from_previous: Decimal | None = None
    change_percentage: float | None = None


@dataclass(frozen=True, slots=True)
class CategorySpending:
    category_id: uuid.UUID
    amount: Decimal
    percentage: float
    transaction_count: int


@dataclass(frozen=True, slots=True)
class CategoryTrend:
    category_id: uuid.UUID
    current_month_amount: Decimal
    previous_month_amount: Decimal
    change: Decimal
    change_percentage: float
    is_increasing: bool
    average_monthly_amount: Decimal
    transaction_count: int


@dataclass(frozen=True, slots=True)
class TopExpense:
    transaction: Transaction
    rank: int


@dataclass(frozen=True, slots=True)
class SpendingByDayOfWeek:
    day_of_week: int  # 1 = Sunday ... 7 = Saturday
    day_name: str
    total_amount: Decimal
    average_amount: Decimal
    transaction_count: int


@dataclass(frozen=True, slots=True)
class SpendingByHour:
    hour: int
    total_amount: Decimal
    average_amount: Decimal
    transaction_count: int


@dataclass(frozen=True, slots=True)
class MonthComparison:
    month1_total: Decimal
    month2_total: Decimal
    difference: Decimal
    percent_change: float


@dataclass(frozen=True, slots=True)
class BudgetPrediction:
    """Linear run-rate projection of a budget period in progress."""

    current_spent: Decimal
    predicted_total: Decimal
    budget_amount: Decimal
    days_in_period: int
    days_elapsed: int
    daily_average: Decimal
    remaining_budget: Decimal
    predicted_overage: Decimal
    is_on_track: bool
    confidence: float

    @property
    def usage_percentage(self) -> float:
        if self.budget_amount <= 0:
            return 0.0
        return float(self.current_spent / self.budget_amount * 100)

    @property
    def predicted_usage_percentage(self) -> float:
        if self.budget_amount <= 0:
            return 0.0
        return float(self.predicted_total / self.budget_amount * 100)

    @classmethod
    def project(
        cls,
        *,
        current_spent: Decimal,
        days_elapsed: int,
        days_in_period: int,
        budget_amount: Decimal,
    ) -> BudgetPrediction:
        """Build a prediction from spend-to-date and the period's day counts.

        ``confidence`` is the elapsed share of the period as a percentage,
        clamped to ``[0, 100]``: 0 on the first instant, 100 once the period
        has fully elapsed.
        """

        daily_average = current_spent / days_elapsed if days_elapsed > 0 else ZERO
        predicted_total = daily_average * days_in_period
        if days_in_period > 0:
            confidence = min(max(days_elapsed / days_in_period * 100, 0.0), 100.0)
        else:
            confidence = 0.0
        return cls(
            current_spent=current_spent,
            predicted_total=predicted_total,
            budget_amount=budget_amount,
            days_in_period=days_in_period,
            days_elapsed=days_elapsed,
            daily_average=daily_average,
            remaining_budget=budget_amount - current_spent,
            predicted_overage=max(predicted_total - budget_amount, ZERO),
            is_on_track=predicted_total <= budget_amount,
            confidence=confidence,
        )


@dataclass(frozen=True, slots=True)
class DetectedRecurringPattern:
    category_id: uuid.UUID
    frequency: RecurringFrequency
    period_days: int
    occurrences: int
    average_amount: Decimal
    last_occurrence: datetime
    next_expected: datetime
    note: str | None
    confidence: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _percent(part: Decimal, whole: Decimal) -> float:
    if whole == 0:
        return 0.0
    return float(part / whole * 100)


def _expenses(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [tx for tx in transactions if tx.type is TransactionType.EXPENSE]


def _total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((tx.amount for tx in transactions), ZERO)


def _within(transactions: Iterable[Transaction], start: datetime, end: datetime):
    return [tx for tx in transactions if start <= tx.date <= end]


# ---------------------------------------------------------------------------
# Trends and breakdowns
# ---------------------------------------------------------------------------


def monthly_trends(
    transactions: Sequence[Transaction], *, months: int, now: datetime
) -> list[SpendingTrend]:
    """One entry per calendar month, oldest first, ending with ``now``'s month.

    Every entry after the first carries ``change_from_previous`` (difference
    in balance) and ``change_percentage`` relative to ``|previous balance|``
    (0.0 when the previous balance is zero).
    """

    trends: list[SpendingTrend] = []
    current_month = dates.start_of_month(now)
    for offset in range(months - 1, -1, -1):
        month_start = current_month - relativedelta(months=offset)
        in_month = _within(transactions, month_start, dates.end_of_month(month_start))
        income = _total(tx for tx in in_month if tx.is_income)
        expense = _total(tx for tx in in_month if tx.is_expense)
        balance = income - expense

        change: Decimal | None = None
        change_pct: float | None = None
        if trends:
            previous = trends[-1].balance
            change = balance - previous
            change_pct = _percent(change, abs(previous))

        trends.append(
            SpendingTrend(
                label=dates.month_label(month_start),
                income=income,
                expense=expense,
                balance=balance,
                date=month_start,
                change_from_previous=change,
                change_percentage=change_pct,
            )
        )
    return trends


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategorySpending]:
    """Expense per category as a share of all expense in ``transactions``.

    Uncategorized expenses count toward the total but get no row. Sorted by
    amount descending, ties by category id.
    """

    expenses = _expenses(transactions)
    total = _total(expenses)
    grouped: dict[uuid.UUID, list[Transaction]] = defaultdict(list)
    for tx in expenses:
        if tx.category_id is not None:
            grouped[tx.category_id].append(tx)

    rows = []
    for cid, txs in grouped.items():
        amount = _total(txs)
        rows.append(
            CategorySpending(
                category_id=cid,
                amount=amount,
                percentage=_percent(amount, total),
                transaction_count=len(txs),
            )
        )
    rows.sort(key=lambda r: (-r.amount, r.category_id))
    return rows


def category_trends(
    transactions: Iterable[Transaction], *, months: int, now: datetime
) -> list[CategoryTrend]:
    """Current vs previous calendar month per expense category.

    The analysis window starts ``months`` calendar months before the first day
    of the current month; ``average_monthly_amount`` divides the window total
    by ``months`` and ``transaction_count`` counts the whole window.
    Sorted by absolute ``change_percentage`` descending, ties by category id.
    """

    current_start = dates.start_of_month(now)
    current_end = dates.end_of_month(now)
    previous_start = current_start - relativedelta(months=1)
    previous_end = dates.end_of_month(previous_start)
    window_start = current_start - relativedelta(months=months)

    grouped: dict[uuid.UUID, list[Transaction]] = defaultdict(list)
    for tx in _expenses(transactions):
        if tx.category_id is not None and window_start <= tx.date <= current_end:
            grouped[tx.category_id].append(tx)

    trends: list[CategoryTrend] = []
    for cid, txs in grouped.items():
        current = _total(_within(txs, current_start, current_end))
        previous = _total(_within(txs, previous_start, previous_end))
        change = current - previous
        trends.append(
            CategoryTrend(
                category_id=cid,
                current_month_amount=current,
                previous_month_amount=previous,
                change=change,
                change_percentage=_percent(change, previous),
                is_increasing=change > 0,
                average_monthly_amount=_total(txs) / months if months > 0 else ZERO,
                transaction_count=len(txs),
            )
        )
    trends.sort(key=lambda t: (-abs(t.change_percentage), t.category_id))
    return trends


def top_expenses(transactions: Iterable[Transaction], *, limit: int = 10) -> list[TopExpense]:
    """The ``limit`` largest expenses, ranked from 1; ties go to the newer one."""

    ordered = sorted(
        _expenses(transactions),
        key=lambda tx: (-tx.amount, -tx.date.timestamp(), tx.id),
    )
    return [TopExpense(transaction=tx, rank=i) for i, tx in enumerate(ordered[:limit], start=1)]


_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def day_of_week(dt: datetime) -> int:
    """1 = Sunday ... 7 = Saturday."""

    return (dt.weekday() + 1) % 7 + 1


def spending_by_day_of_week(transactions: Iterable[Transaction]) -> list[SpendingByDayOfWeek]:
    buckets: dict[int, list[Decimal]] = defaultdict(list)
    for tx in _expenses(transactions):
        buckets[day_of_week(tx.date)].append(tx.amount)
    result = []
    for dow in range(1, 8):
        amounts = buckets.get(dow, [])
        total = sum(amounts, ZERO)
        result.append(
            SpendingByDayOfWeek(
                day_of_week=dow,
                day_name=_DAY_NAMES[dow - 1],
                total_amount=total,
                average_amount=total / len(amounts) if amounts else ZERO,
                transaction_count=len(amounts),
            )
        )
    return result


def spending_by_hour(transactions: Iterable[Transaction]) -> list[SpendingByHour]:
    buckets: dict[int, list[Decimal]] = defaultdict(list)
    for tx in _expenses(transactions):
        buckets[tx.date.hour].append(tx.amount)
    result = []
    for hour in range(24):
        amounts = buckets.get(hour, [])
        total = sum(amounts, ZERO)
        result.append(
            SpendingByHour(
                hour=hour,
                total_amount=total,
                average_amount=total / len(amounts) if amounts else ZERO,
                transaction_count=len(amounts),
            )
        )
    return result


def compare_months(
    transactions: Iterable[Transaction], month1: datetime, month2: datetime
) -> MonthComparison:
    """Expense totals of two calendar months and the change from the first.

    ``percent_change`` is 100 when the first month is empty and the second
    is not, and 0 when both are empty.
    """

    expenses = _expenses(transactions)
    total1 = _total(_within(expenses, dates.start_of_month(month1), dates.end_of_month(month1)))
    total2 = _total(_within(expenses, dates.start_of_month(month2), dates.end_of_month(month2)))
    difference = total2 - total1
    if total1 > 0:
        pct = float(difference / total1 * 100)
    else:
        pct = 100.0 if total2 > 0 else 0.0
    return MonthComparison(total1, total2, difference, pct)


# ---------------------------------------------------------------------------
# Budget prediction
# ---------------------------------------------------------------------------


def predict_budget(
    budget: Budget, transactions: Iterable[Transaction], *, now: datetime
) -> BudgetPrediction:
    """Project spend at the end of ``budget``'s current period.

    Day counts are inclusive of both the first day of the period and today,
    so the first day of a month counts as one elapsed day.
    """

    start, end = budget.current_period_dates(now)
    spent = _total(
        tx
        for tx in _expenses(transactions)
        if start <= tx.date <= end
        and (budget.category_id is None or tx.category_id == budget.category_id)
    )
    days_in_period = dates.inclusive_days(start, end)
    days_elapsed = min(dates.inclusive_days(start, now), days_in_period)
    return BudgetPrediction.project(
        current_spent=spent,
        days_elapsed=days_elapsed,
        days_in_period=days_in_period,
        budget_amount=budget.amount,
    )


# ---------------------------------------------------------------------------
# Recurring pattern detection
# ---------------------------------------------------------------------------

# (period in days, tolerance in days, frequency used for the next expected date)
CANONICAL_PERIODS: tuple[tuple[int, int, RecurringFrequency], ...] = (
    (7, 3, RecurringFrequency.WEEKLY),
    (14, 3, RecurringFrequency.BIWEEKLY),
    (30, 5, RecurringFrequency.MONTHLY),
    (365, 15, RecurringFrequency.YEARLY),
)


def nearest_period(gap_days: int) -> int | None:
    """Canonical period closest to ``gap_days`` within its tolerance, else None."""

    best: tuple[int, int] | None = None
    for period, tolerance, _ in CANONICAL_PERIODS:
        distance = abs(gap_days - period)
        if distance <= tolerance and (best is None or distance < best[0]):
            best = (distance, period)
    return best[1] if best else None


def _coefficient_of_variation(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean == 0:
        return 0.0
    return statistics.pstdev(values) / mean


def _pattern_for(
    category_id: uuid.UUID, txs: list[Transaction], min_occurrences: int
) -> DetectedRecurringPattern | None:
    txs = sorted(txs, key=lambda tx: (tx.date, tx.id))
    by_period: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for i in range(1, len(txs)):
        gap = (txs[i].date.date() - txs[i - 1].date.date()).days
        period = nearest_period(gap)
        if period is not None:
            by_period[period].append((i - 1, gap))

    best: tuple[int, int, set[int], list[int]] | None = None
    for period, hits in by_period.items():
        members = {i for i, _ in hits} | {i + 1 for i, _ in hits}
        gaps = [gap for _, gap in hits]
        # Most transactions wins; shorter period breaks ties.
        if best is None or (len(members), -period) > (len(best[2]), -best[0]):
            best = (period, len(members), members, gaps)
    if best is None or best[1] < min_occurrences:
        return None

    period, count, members, gaps = best
    chosen = [txs[i] for i in sorted(members)]
    amounts = [tx.amount for tx in chosen]
    cv_amount = _coefficient_of_variation([float(a) for a in amounts])
    cv_gap = _coefficient_of_variation([float(g) for g in gaps])
    confidence = min(max(1.0 - 0.5 * (cv_amount + cv_gap), 0.0), 1.0)

    frequency = next(f for p, _, f in CANONICAL_PERIODS if p == period)
    last = max(tx.date for tx in chosen)
    notes = Counter(tx.note for tx in chosen if tx.note)
    note = notes.most_common(1)[0][0] if notes else None

    return DetectedRecurringPattern(
        category_id=category_id,
        frequency=frequency,
        period_days=period,
        occurrences=count,
        average_amount=sum(amounts, ZERO) / count,
        last_occurrence=last,
        next_expected=frequency.advance(last),
        note=note,
        confidence=confidence,
    )


def detect_recurring_patterns(
    transactions: Iterable[Transaction],
    *,
    min_occurrences: int = 3,
    min_confidence: float = 0.0,
) -> list[DetectedRecurringPattern]:
    """Mine periodic expenses per category.

    Consecutive gaps (in calendar days) are snapped to the nearest canonical
    period within tolerance; other gaps are noise. The period covering the
    most transactions wins and must cover at least ``min_occurrences`` of
    them. Confidence is ``1 - (cv(amounts) + cv(gaps)) / 2`` clamped to
    ``[0, 1]``, where ``cv`` is the population coefficient of variation.
    Results are sorted by confidence descending, ties by category id.
    """

    grouped: dict[uuid.UUID, list[Transaction]] = defaultdict(list)
    for tx in _expenses(transactions):
        if tx.category_id is not None:
            grouped[tx.category_id].append(tx)

    patterns = []
    for cid, txs in grouped.items():
        pattern = _pattern_for(cid, txs, min_occurrences)
        if pattern is not None and pattern.confidence >= min_confidence:
            patterns.append(pattern)
    patterns.sort(key=lambda p: (-p.confidence, p.category_id))
    return patterns


__all__ = [
    "CANONICAL_PERIODS",
    "BudgetPrediction",
    "CategorySpending",
    "CategoryTrend",
    "DetectedRecurringPattern",
    "InsightPeriod",
    "MonthComparison",
    "SpendingByDayOfWeek",
    "SpendingByHour",
    "SpendingTrend",
    "TopExpense",
    "category_breakdown",
    "category_trends",
    "compare_months",
    "day_of_week",
    "detect_recurring_patterns",
    "monthly_trends",
    "nearest_period",
    "predict_budget",
    "spending_by_day_of_week",
    "spending_by_hour",
    "top_expenses",
]
