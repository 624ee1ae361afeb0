"""Shared fixtures: a frozen clock and an engine over a per-test SQLite file.

Every test gets its own database file under ``tmp_path`` and a clock pinned to
a known instant, so date-dependent behavior (current month, budget periods,
recurring due dates) is deterministic.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from ledger_engine import LedgerConfig, LedgerContext, LedgerEngine, TransactionType

from tests.helpers.db import bootstrap_sqlite_db

FROZEN_NOW = datetime(2024, 3, 15, 12, 0, 0)


class FrozenClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = FROZEN_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's LEDGER_* environment out of the tests."""

    for name in (
        "LEDGER_DATABASE_URL",
        "DATABASE_URL",
        "LEDGER_DEFAULT_CURRENCY",
        "LEDGER_AUTO_GENERATED_LABEL",
        "LEDGER_WARNING_THRESHOLD",
        "LEDGER_INSIGHTS_WORKERS",
        "LEDGER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger.db"


@pytest.fixture
def config(db_path: Path, clock: FrozenClock) -> LedgerConfig:
    return LedgerConfig(database_url=f"sqlite+pysqlite:///{db_path}", clock=clock)


@pytest.fixture
def engine(config: LedgerConfig, db_path: Path):
    database = bootstrap_sqlite_db(db_path)
    eng = LedgerEngine(LedgerContext(config=config, database=database))
    try:
        yield eng
    finally:
        eng.close()


@pytest.fixture
def food(engine: LedgerEngine):
    return engine.categories.create("Food", TransactionType.EXPENSE)


@pytest.fixture
def transport(engine: LedgerEngine):
    return engine.categories.create("Transport", TransactionType.EXPENSE)


@pytest.fixture
def salary(engine: LedgerEngine):
    return engine.categories.create("Salary", TransactionType.INCOME)


@pytest.fixture
def make_engine(tmp_path: Path, clock: FrozenClock):
    """Factory for additional engines, each over its own database file."""

    opened: list[LedgerEngine] = []

    def _make(name: str) -> LedgerEngine:
        db_file = tmp_path / f"{name}.db"
        config = LedgerConfig(database_url=f"sqlite+pysqlite:///{db_file}", clock=clock)
        eng = LedgerEngine(LedgerContext(config=config, database=bootstrap_sqlite_db(db_file)))
        opened.append(eng)
        return eng

    yield _make
    for eng in opened:
        eng.close()
