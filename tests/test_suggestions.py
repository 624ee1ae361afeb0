from __future__ import annotations

import uuid

import pytest

from ledger_engine import Category, NotFound, TransactionType
from ledger_engine.suggestions import BUILTIN_KEYWORDS, note_words, suggest_category


def _category(name: str, icon: str, tx_type=TransactionType.EXPENSE) -> Category:
    return Category(id=uuid.uuid4(), name=name, type=tx_type, icon=icon)


CATEGORIES = [
    _category("Food", "fork.knife"),
    _category("Transport", "car.fill"),
    _category("Shopping", "bag.fill"),
    _category("Entertainment", "gamecontroller.fill"),
    _category("Medical", "cross.case.fill"),
    _category("Salary", "banknote.fill", TransactionType.INCOME),
]


def _suggested_name(note: str, learned=None) -> str | None:
    found = suggest_category(note, CATEGORIES, learned)
    return found.name if found is not None else None


@pytest.mark.parametrize(
    ("note", "expected"),
    [
        ("스타벅스 아메리카노", "Food"),
        ("카페에서 커피", "Food"),
        ("배달의민족 치킨", "Food"),
        ("카카오택시", "Transport"),
        ("지하철 요금", "Transport"),
        ("쿠팡에서 쇼핑", "Shopping"),
        ("넷플릭스 구독", "Entertainment"),
        ("병원 진료비", "Medical"),
        ("12월 급여", "Salary"),
        ("Lunch with team", "Food"),
        ("Uber ride", "Transport"),
        ("Uber Eats order", "Food"),
        ("Amazon order", "Shopping"),
        ("STARBUCKS", "Food"),
        ("NetFlix Premium", "Entertainment"),
        ("Monthly salary", "Salary"),
    ],
)
def test_builtin_keywords(note, expected):
    assert _suggested_name(note) == expected


@pytest.mark.parametrize("note", ["random text here", "", "   ", "business trip", "cucumber"])
def test_no_match(note):
    assert _suggested_name(note) is None


def test_no_candidates():
    assert suggest_category("스타벅스", []) is None


def test_keyword_for_missing_icon_falls_through():
    only_transport = [c for c in CATEGORIES if c.name == "Transport"]
    found = suggest_category("coffee then taxi", only_transport)
    assert found is not None and found.name == "Transport"


def test_learned_keywords_win_over_builtin():
    learned = {"mystore": "bag.fill", "monthly": "gamecontroller.fill"}
    assert _suggested_name("mystore purchase", learned) == "Shopping"
    assert _suggested_name("monthly salary", learned) == "Entertainment"


def test_note_words():
    assert note_words("Monthly gym_membership, a GYM!") == ["monthly", "gym", "membership"]
    assert note_words("a") == []
    assert note_words("점심회식 2차") == ["점심회식", "2차"]


# ---- persisted learning ------------------------------------------------------


@pytest.fixture
def seeded(engine):
    engine.categories.seed_defaults()
    return engine


def _named(engine, name, tx_type=TransactionType.EXPENSE) -> Category:
    found = engine.categories.find(name, tx_type)
    assert found is not None
    return found


def test_learn_from_selection_persists(seeded):
    food = _named(seeded, "Food")

    learned = seeded.suggestions.learn_from_selection("점심회식 with team", food)

    assert learned == ["점심회식", "with", "team"]
    assert seeded.suggestions.learned_keywords() == {
        "team": "fork.knife",
        "with": "fork.knife",
        "점심회식": "fork.knife",
    }
    suggested = seeded.suggestions.suggest("점심회식", TransactionType.EXPENSE)
    assert suggested is not None and suggested.id == food.id


def test_learning_skips_builtin_keywords(seeded):
    transport = _named(seeded, "Transport")

    assert seeded.suggestions.learn_from_selection("스타벅스", transport) == []
    assert "스타벅스" in BUILTIN_KEYWORDS
    assert seeded.suggestions.suggest("스타벅스").name == "Food"


def test_relearning_moves_keyword(seeded):
    food, shopping = _named(seeded, "Food"), _named(seeded, "Shopping")

    seeded.suggestions.learn_from_selection("mystore", food)
    seeded.suggestions.learn_from_selection("mystore", shopping.id)

    assert seeded.suggestions.learned_keywords() == {"mystore": "bag.fill"}
    assert seeded.suggestions.suggest("MyStore receipt").name == "Shopping"


def test_learn_for_unknown_category(seeded):
    with pytest.raises(NotFound):
        seeded.suggestions.learn_from_selection("mystore", uuid.uuid4())


def test_suggest_respects_type(seeded):
    assert seeded.suggestions.suggest("bonus", TransactionType.INCOME).name == "Salary"
    assert seeded.suggestions.suggest("bonus", TransactionType.EXPENSE) is None


def test_clear_learned(seeded):
    seeded.suggestions.learn_from_selection("mystore purchase", _named(seeded, "Shopping"))

    assert seeded.suggestions.clear_learned() == 2
    assert seeded.suggestions.learned_keywords() == {}
    assert seeded.suggestions.suggest("mystore") is None


def test_record_suggests_and_learns(seeded):
    tx = seeded.record(4500, "expense", note="Starbucks latte")
    assert tx.category_id == _named(seeded, "Food").id

    shopping = _named(seeded, "Shopping")
    seeded.record(12000, "expense", note="mystore", category_id=shopping.id)
    assert seeded.record(3000, "expense", note="mystore again").category_id == shopping.id

    assert seeded.record(100, "expense", note="something else").category_id is None
