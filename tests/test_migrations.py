from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from db import Database, LedgerTransaction
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from tests.helpers.db import assert_schema_in_sync, bootstrap_sqlite_db, foreign_keys_enabled

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "libs" / "db" / "alembic"


@pytest.fixture
def alembic_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setenv("LEDGER_DATABASE_URL", url)
    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    return cfg, url


def _indexes(database: Database) -> dict[str, set[str]]:
    inspector = inspect(database.engine)
    return {
        table: {ix["name"] for ix in inspector.get_indexes(table)}
        for table in inspector.get_table_names()
        if table.startswith("ledger_")
    }


def test_upgrade_matches_models(alembic_config, tmp_path: Path):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")

    migrated = Database(url)
    try:
        assert_schema_in_sync(migrated)
        reference = bootstrap_sqlite_db(tmp_path / "reference.db")
        assert _indexes(migrated) == _indexes(reference)
        reference.dispose()
    finally:
        migrated.dispose()


def test_downgrade_removes_tables(alembic_config):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    database = Database(url)
    try:
        tables = inspect(database.engine).get_table_names()
        assert [t for t in tables if t.startswith("ledger_")] == []
    finally:
        database.dispose()


def test_sqlite_connections_enforce_foreign_keys(tmp_path: Path):
    database = bootstrap_sqlite_db(tmp_path / "fk.db")
    try:
        assert foreign_keys_enabled(database)
    finally:
        database.dispose()


def test_memory_database_is_shared_across_sessions():
    database = Database("sqlite+pysqlite:///:memory:")
    database.create_all()
    try:
        assert_schema_in_sync(database)
    finally:
        database.dispose()


def test_money_columns_store_exact_text(alembic_config):
    cfg, url = alembic_config
    command.upgrade(cfg, "head")

    database = Database(url)
    try:
        tx_id = uuid.uuid4()
        with database.session_scope() as session:
            session.add(
                LedgerTransaction(
                    id=tx_id,
                    amount=Decimal("98765432109876543.21"),
                    type="expense",
                    date=datetime(2024, 3, 1),
                )
            )
        with database.session_scope() as session:
            assert session.get(LedgerTransaction, tx_id).amount == Decimal("98765432109876543.21")
        with database.engine.connect() as conn:
            stored = conn.execute(text("SELECT amount, typeof(amount) FROM ledger_transactions"))
            assert stored.one() == ("98765432109876543.21", "text")

        with pytest.raises(IntegrityError), database.session_scope() as session:
            session.add(
                LedgerTransaction(
                    id=uuid.uuid4(),
                    amount=Decimal("0.00"),
                    type="expense",
                    date=datetime(2024, 3, 1),
                )
            )
    finally:
        database.dispose()
