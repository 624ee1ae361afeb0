from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import pytest

from ledger_engine import (
    Budget,
    BudgetPeriod,
    InvalidData,
    NotFound,
    StatusKind,
    budget_status,
    threshold_crossing,
)


def test_warning_above_threshold():
    status = budget_status(500000, 450000)
    assert status.kind is StatusKind.WARNING
    assert status.remaining == Decimal(50000)
    assert status.percentage == pytest.approx(90.0)
    assert status.overspent == 0


def test_exceeded_reports_overspend():
    status = budget_status(500000, 600000)
    assert status.kind is StatusKind.EXCEEDED
    assert status.remaining == Decimal(-100000)
    assert status.overspent == Decimal(100000)
    assert status.percentage == pytest.approx(120.0)


def test_threshold_is_inclusive():
    assert budget_status(100000, 80000).kind is StatusKind.WARNING
    assert budget_status(100000, 79999).kind is StatusKind.SAFE
    assert budget_status(100000, 100000).kind is StatusKind.WARNING
    assert budget_status(100000, 50000, warning_threshold=50).kind is StatusKind.WARNING


def test_zero_budget_does_not_divide():
    idle = budget_status(0, 0)
    assert idle.kind is StatusKind.SAFE
    assert idle.percentage == 0.0

    spent = budget_status(0, 100)
    assert spent.kind is StatusKind.EXCEEDED
    assert spent.percentage == 0.0
    assert spent.overspent == Decimal(100)


def test_threshold_crossing_only_on_escalation():
    safe = budget_status(100, 10)
    warning = budget_status(100, 85)
    exceeded = budget_status(100, 120)

    assert threshold_crossing(None, safe) is None
    assert threshold_crossing(safe, warning) is StatusKind.WARNING
    assert threshold_crossing(warning, budget_status(100, 90)) is None
    assert threshold_crossing(warning, exceeded) is StatusKind.EXCEEDED
    assert threshold_crossing(safe, exceeded) is StatusKind.EXCEEDED
    assert threshold_crossing(exceeded, warning) is None
    assert threshold_crossing(None, exceeded) is StatusKind.EXCEEDED


@pytest.mark.parametrize(
    ("period", "start", "end"),
    [
        # 2024-03-15 is a Friday.
        (BudgetPeriod.WEEKLY, datetime(2024, 3, 11), datetime(2024, 3, 17, 23, 59, 59, 999999)),
        (BudgetPeriod.MONTHLY, datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59, 999999)),
        (BudgetPeriod.YEARLY, datetime(2024, 1, 1), datetime(2024, 12, 31, 23, 59, 59, 999999)),
    ],
)
def test_current_period_bounds(period, start, end):
    budget = Budget(
        id=uuid.uuid4(), amount=Decimal(1), period=period, start_date=datetime(2020, 6, 9)
    )
    assert budget.current_period_dates(datetime(2024, 3, 15, 12)) == (start, end)


def test_one_budget_per_scope(engine, food):
    engine.budgets.create(100000, category_id=food.id)
    engine.budgets.create(500000)

    with pytest.raises(InvalidData):
        engine.budgets.create(1, category_id=food.id)
    with pytest.raises(InvalidData):
        engine.budgets.create(1)
    assert len(engine.budgets.fetch_all()) == 2


def test_budget_requires_expense_category(engine, salary):
    with pytest.raises(InvalidData):
        engine.budgets.create(100000, category_id=salary.id)
    with pytest.raises(NotFound):
        engine.budgets.create(100000, category_id=uuid.uuid4())
    with pytest.raises(InvalidData):
        engine.budgets.create(-1)


def test_spent_respects_scope_and_period(engine, food, transport, salary):
    food_budget = engine.budgets.create(100000, category_id=food.id)
    total = engine.budgets.create(200000)

    engine.ledger.create(30000, "expense", category_id=food.id, date=datetime(2024, 3, 2))
    engine.ledger.create(20000, "expense", category_id=transport.id, date=datetime(2024, 3, 9))
    engine.ledger.create(5000, "expense", date=datetime(2024, 3, 14))
    engine.ledger.create(90000, "income", category_id=salary.id, date=datetime(2024, 3, 10))
    # Previous month does not count.
    engine.ledger.create(70000, "expense", category_id=food.id, date=datetime(2024, 2, 29))

    assert engine.budgets.spent(food_budget) == Decimal(30000)
    assert engine.budgets.spent(total) == Decimal(55000)
    assert engine.budgets.spent(food_budget, now=datetime(2024, 2, 10)) == Decimal(70000)


def test_evaluate_uses_configured_threshold(engine, food):
    budget = engine.budgets.create(100000, category_id=food.id)
    engine.ledger.create(85000, "expense", category_id=food.id, date=datetime(2024, 3, 5))

    status = engine.budgets.evaluate(budget)
    assert status.kind is StatusKind.WARNING
    assert status.remaining == Decimal(15000)

    overview = engine.budget_overview()
    assert overview == [(budget, status)]


def test_update_and_delete(engine, food):
    budget = engine.budgets.create(100000, category_id=food.id)
    updated = engine.budgets.update(budget.id, amount=150000, period="weekly")
    assert updated.amount == Decimal(150000)
    assert updated.period is BudgetPeriod.WEEKLY
    assert engine.budgets.fetch_for_category(food.id) == updated

    engine.budgets.delete(budget.id)
    assert engine.budgets.fetch_for_category(food.id) is None
    assert engine.budgets.fetch_total_budget() is None
    with pytest.raises(NotFound):
        engine.budgets.get(budget.id)
