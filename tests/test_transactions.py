from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from ledger_engine import (
    Currency,
    FetchFailed,
    GeoLocation,
    InvalidData,
    NotFound,
    SaveFailed,
    Transaction,
    TransactionType,
)
from ledger_engine.query import SortKey


def _tx(amount: int, tx_type: TransactionType) -> Transaction:
    return Transaction(
        id=uuid.uuid4(), amount=Decimal(amount), type=tx_type, date=datetime(2024, 1, 1)
    )


def test_signed_amount_follows_type():
    assert _tx(1000, TransactionType.INCOME).signed_amount == Decimal(1000)
    assert _tx(1000, TransactionType.EXPENSE).signed_amount == Decimal(-1000)


def test_create_persists_and_defaults(engine, clock, food):
    tx = engine.ledger.create(4500, "expense", category_id=food.id, note="coffee")

    assert tx.amount == Decimal(4500)
    assert tx.type is TransactionType.EXPENSE
    assert tx.currency is Currency.KRW
    assert tx.date == clock.now
    assert tx.created_at == clock.now
    assert engine.ledger.get(tx.id) == tx


@pytest.mark.parametrize("amount", [0, -1, "-2500", "abc"])
def test_create_rejects_non_positive_amounts(engine, amount):
    with pytest.raises(InvalidData):
        engine.ledger.create(amount, TransactionType.EXPENSE)
    assert engine.ledger.fetch_all() == []


@pytest.mark.parametrize("amount", ["0.004", Decimal("12.345"), "Infinity", "NaN"])
def test_create_rejects_sub_cent_and_non_finite_amounts(engine, amount):
    with pytest.raises(InvalidData):
        engine.ledger.create(amount, TransactionType.EXPENSE, currency="USD")
    assert engine.ledger.fetch_all() == []


def test_amounts_round_trip_exactly(engine):
    large = engine.ledger.create(Decimal("12345678901234567.89"), "income", currency="USD")
    cents = [engine.ledger.create("0.01", "expense", currency="USD") for _ in range(3)]

    assert engine.ledger.get(large.id).amount == Decimal("12345678901234567.89")
    assert [engine.ledger.get(tx.id).amount for tx in cents] == [Decimal("0.01")] * 3
    assert engine.ledger.total_balance() == Decimal("12345678901234567.86")


def test_amount_sort_is_numeric(engine):
    for amount in ("900", "10000", "25.50"):
        engine.ledger.create(amount, "expense")

    ordered = engine.ledger.fetch_all(SortKey.AMOUNT, descending=True)
    assert [tx.amount for tx in ordered] == [Decimal(10000), Decimal(900), Decimal("25.50")]


def test_create_rejects_category_of_other_direction(engine, salary):
    with pytest.raises(InvalidData):
        engine.ledger.create(1000, TransactionType.EXPENSE, category_id=salary.id)


def test_create_unknown_category_is_not_found(engine):
    with pytest.raises(NotFound):
        engine.ledger.create(1000, TransactionType.EXPENSE, category_id=uuid.uuid4())


def test_location_is_all_or_nothing(engine):
    with pytest.raises(InvalidData):
        engine.ledger.create(1000, "expense", location=GeoLocation(37.5, 127.0, "  "))

    tx = engine.ledger.create(1000, "expense", location=GeoLocation(37.5, 127.0, "Gangnam"))
    assert engine.ledger.get(tx.id).location == GeoLocation(37.5, 127.0, "Gangnam")


@pytest.mark.parametrize("order", [(0, 1, 2, 3), (3, 2, 1, 0), (2, 0, 3, 1)])
def test_total_balance_is_order_independent(make_engine, order):
    entries = [
        (100000, TransactionType.INCOME),
        (30000, TransactionType.EXPENSE),
        (50000, TransactionType.INCOME),
        (12500, TransactionType.EXPENSE),
    ]
    eng = make_engine("balance")
    for i in order:
        eng.ledger.create(*entries[i])
    expected = sum((t.signed_amount for t in eng.ledger.fetch_all()), Decimal(0))
    assert eng.ledger.total_balance() == expected == Decimal(107500)


def test_income_expense_and_balance_within_month(engine, clock):
    start = datetime(2024, 3, 1)
    end = datetime(2024, 3, 31, 23, 59, 59)
    engine.ledger.create(100000, "income", date=datetime(2024, 3, 2))
    engine.ledger.create(50000, "income", date=datetime(2024, 3, 20))
    engine.ledger.create(30000, "expense", date=datetime(2024, 3, 5))
    # Outside the month.
    engine.ledger.create(99999, "income", date=datetime(2024, 4, 1))

    assert engine.ledger.total_income(start, end) == Decimal(150000)
    assert engine.ledger.total_expense(start, end) == Decimal(30000)
    assert engine.ledger.balance(start, end) == Decimal(120000)


def test_expense_by_category_sums_and_sorts(engine, food, transport, salary):
    day = datetime(2024, 3, 10)
    engine.ledger.create(10000, "expense", category_id=food.id, date=day)
    engine.ledger.create(15000, "expense", category_id=food.id, date=day)
    engine.ledger.create(5000, "expense", category_id=transport.id, date=day)
    engine.ledger.create(7000, "expense", date=day)  # uncategorized
    engine.ledger.create(90000, "income", category_id=salary.id, date=day)

    rows = engine.ledger.expense_by_category(datetime(2024, 3, 1), datetime(2024, 3, 31))

    assert [(r.category_id, r.amount) for r in rows] == [
        (food.id, Decimal(25000)),
        (transport.id, Decimal(5000)),
    ]


def test_expense_by_category_breaks_ties_by_category_id(engine, food, transport):
    day = datetime(2024, 3, 10)
    engine.ledger.create(5000, "expense", category_id=food.id, date=day)
    engine.ledger.create(5000, "expense", category_id=transport.id, date=day)

    rows = engine.ledger.expense_by_category(datetime(2024, 3, 1), datetime(2024, 3, 31))

    assert [r.category_id for r in rows] == sorted([food.id, transport.id])


def test_search_is_case_insensitive_substring(engine):
    hit = engine.ledger.create(5500, "expense", note="스타벅스 커피")
    engine.ledger.create(3000, "expense", note="이디야 아메리카노")
    latin = engine.ledger.create(4000, "expense", note="Morning COFFEE run")

    assert [t.id for t in engine.ledger.search("커피")] == [hit.id]
    assert [t.id for t in engine.ledger.search("coffee")] == [latin.id]


def test_fetch_day_bounds_are_inclusive(engine):
    day = datetime(2024, 3, 10)
    first = engine.ledger.create(1000, "expense", date=day)
    last = engine.ledger.create(1000, "expense", date=day + timedelta(days=1, microseconds=-1))
    engine.ledger.create(1000, "expense", date=day + timedelta(days=1))
    engine.ledger.create(1000, "expense", date=day - timedelta(microseconds=1))

    assert {t.id for t in engine.ledger.fetch_day(datetime(2024, 3, 10, 15, 30))} == {
        first.id,
        last.id,
    }


def test_fetch_current_month_uses_clock(engine, clock):
    inside = engine.ledger.create(1000, "expense", date=datetime(2024, 3, 31, 23, 0))
    engine.ledger.create(1000, "expense", date=datetime(2024, 2, 29, 23, 0))

    assert [t.id for t in engine.ledger.fetch_current_month()] == [inside.id]

    clock.set(datetime(2024, 2, 10))
    assert [t.date for t in engine.ledger.fetch_current_month()] == [datetime(2024, 2, 29, 23, 0)]


def test_fetch_all_sorting(engine):
    a = engine.ledger.create(3000, "expense", date=datetime(2024, 3, 1))
    b = engine.ledger.create(1000, "expense", date=datetime(2024, 3, 3))
    c = engine.ledger.create(2000, "expense", date=datetime(2024, 3, 2))

    assert [t.id for t in engine.ledger.fetch_all()] == [b.id, c.id, a.id]
    by_amount = engine.ledger.fetch_all(SortKey.AMOUNT, descending=False)
    assert [t.id for t in by_amount] == [b.id, c.id, a.id]
    assert [t.id for t in engine.ledger.fetch_all("amount")] == [a.id, c.id, b.id]


def test_update_edits_fields_and_clears_category(engine, clock, food):
    tx = engine.ledger.create(1000, "expense", category_id=food.id, note="lunch")
    clock.advance(hours=1)

    edited = engine.ledger.update(tx.id, amount="1200", note="late lunch")
    assert edited.amount == Decimal(1200)
    assert edited.note == "late lunch"
    assert edited.category_id == food.id
    assert edited.updated_at == clock.now
    assert edited.created_at == tx.created_at

    cleared = engine.ledger.update(tx.id, category_id=None)
    assert cleared.category_id is None


def test_update_rejects_type_change_that_breaks_category(engine, food):
    tx = engine.ledger.create(1000, "expense", category_id=food.id)
    with pytest.raises(InvalidData):
        engine.ledger.update(tx.id, type=TransactionType.INCOME)
    assert engine.ledger.get(tx.id).type is TransactionType.EXPENSE


def test_delete_and_not_found(engine):
    tx = engine.ledger.create(1000, "expense")
    engine.ledger.delete(tx)
    assert engine.ledger.fetch_all() == []
    with pytest.raises(NotFound):
        engine.ledger.delete(tx.id)
    with pytest.raises(NotFound):
        engine.ledger.get(tx.id)


def test_tag_usage_is_counted_on_create(engine):
    engine.tags.create("trip")
    engine.tags.create("work")

    tx = engine.ledger.create(1000, "expense", tag_names=["trip", " trip ", "unknown"])

    assert tx.tag_names == ("trip", "unknown")
    usage = {t.name: t.usage_count for t in engine.tags.fetch_all()}
    assert usage == {"trip": 1, "work": 0}


def test_storage_failures_are_wrapped(engine):
    engine.ledger.create(1000, "expense")
    with engine.ctx.database.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE ledger_transactions")

    with pytest.raises(FetchFailed) as fetch_info:
        engine.ledger.fetch_all()
    assert fetch_info.value.underlying is fetch_info.value.__cause__

    with pytest.raises(SaveFailed):
        engine.ledger.create(1000, "expense")
