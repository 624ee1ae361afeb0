from __future__ import annotations

import io
import logging
from datetime import datetime
from decimal import Decimal

import pytest

from ledger_engine import Currency, LedgerConfig, LedgerContext, LedgerEngine, logging_setup


def test_from_env_reads_ledger_settings(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///fallback.db")
    monkeypatch.setenv("LEDGER_DEFAULT_CURRENCY", "usd")
    monkeypatch.setenv("LEDGER_AUTO_GENERATED_LABEL", "자동")
    monkeypatch.setenv("LEDGER_WARNING_THRESHOLD", "70")
    monkeypatch.setenv("LEDGER_INSIGHTS_WORKERS", "0")

    config = LedgerConfig.from_env()

    assert config.database_url == "sqlite+pysqlite:///fallback.db"
    assert config.default_currency is Currency.USD
    assert config.auto_generated_label == "자동"
    assert config.warning_threshold == Decimal(70)
    assert config.insights_workers == 1


def test_from_env_overrides_win(monkeypatch):
    monkeypatch.setenv("LEDGER_DATABASE_URL", "sqlite+pysqlite:///env.db")
    fixed = datetime(2024, 1, 1)

    config = LedgerConfig.from_env(database_url=None, clock=lambda: fixed)
    assert config.database_url == "sqlite+pysqlite:///env.db"
    assert config.now() == fixed

    assert LedgerConfig.from_env(database_url="sqlite://").database_url == "sqlite://"


def test_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("LEDGER_WARNING_THRESHOLD", "high")
    with pytest.raises(ValueError, match="LEDGER_WARNING_THRESHOLD"):
        LedgerConfig.from_env()


def test_currency_metadata():
    assert Currency.parse(" jpy ") is Currency.JPY
    assert Currency.KRW.decimal_places == 0
    assert Currency.USD.decimal_places == 2
    assert Currency.EUR.symbol == "€"
    with pytest.raises(ValueError):
        Currency.parse("XYZ")


def test_default_currency_applies_to_new_transactions(clock):
    config = LedgerConfig(
        database_url="sqlite+pysqlite:///:memory:", default_currency=Currency.EUR, clock=clock
    )
    with LedgerEngine(LedgerContext.open(config)) as engine:
        tx = engine.ledger.create("9.99", "expense")
        assert tx.currency is Currency.EUR
        assert engine.ledger.get(tx.id).amount == Decimal("9.99")


@pytest.fixture
def fresh_logging(monkeypatch):
    pkg = logging.getLogger("ledger_engine")
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    pkg.handlers.clear()
    yield pkg
    pkg.handlers[:] = saved[0]
    pkg.setLevel(saved[1])
    pkg.propagate = saved[2]


def test_configure_logging_once(fresh_logging):
    stream = io.StringIO()

    logging_setup.configure_logging("debug", stream=stream)
    logging_setup.configure_logging("ERROR", stream=io.StringIO())
    logging_setup.get_logger("ledger_engine.tests").debug("hello %s", "ledger")

    assert fresh_logging.level == logging.DEBUG
    assert len(fresh_logging.handlers) == 1
    line = stream.getvalue().strip()
    assert line.endswith("DEBUG ledger_engine.tests [MainThread] hello ledger")


def test_log_level_comes_from_config(fresh_logging, monkeypatch):
    monkeypatch.setenv("LEDGER_LOG_LEVEL", "warning")
    config = LedgerConfig.from_env()
    assert config.log_level == "warning"
    assert LedgerConfig.from_env(log_level="DEBUG").log_level == "DEBUG"

    logging_setup.configure_logging(config.log_level, stream=io.StringIO())
    assert fresh_logging.level == logging.WARNING


@pytest.mark.parametrize(("raw", "expected"), [("info", 20), (" Debug ", 10), ("30", 30), (40, 40)])
def test_resolve_level(raw, expected):
    assert logging_setup.resolve_level(raw) == expected


def test_unknown_level_is_rejected(fresh_logging):
    with pytest.raises(ValueError, match="unknown log level"):
        logging_setup.configure_logging("chatty")
    assert fresh_logging.handlers == []


def test_get_logger_prefixes_module_names(fresh_logging):
    assert logging_setup.get_logger("quiet").name == "ledger_engine.quiet"
    assert logging_setup.get_logger("ledger_engine.api").name == "ledger_engine.api"
    assert any(isinstance(h, logging.NullHandler) for h in fresh_logging.handlers)
