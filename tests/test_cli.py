from __future__ import annotations

from datetime import datetime

import pytest
from typer.testing import CliRunner

from ledger_engine import LedgerConfig, LedgerEngine, logging_setup
from ledger_engine.cli import app

runner = CliRunner()


@pytest.fixture
def url(tmp_path, monkeypatch):
    # Logging stays under pytest's control; the CLI callback would otherwise
    # attach a handler to the package logger for the rest of the session.
    monkeypatch.setattr(logging_setup, "_CONFIGURED", True)
    monkeypatch.chdir(tmp_path)
    return f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"


def invoke(url: str, *args: str):
    return runner.invoke(app, ["--database-url", url, *args])


def test_init_db_seeds_once(url):
    first = invoke(url, "init-db")
    assert first.exit_code == 0, first.output
    assert "13 default categories created" in first.output

    second = invoke(url, "init-db")
    assert "0 default categories created" in second.output


def test_add_list_and_search(url):
    invoke(url, "init-db")

    added = invoke(
        url, "add", "4500", "--category", "food", "--note", "Starbucks coffee",
        "--date", "2024-03-05",
    )
    assert added.exit_code == 0, added.output
    assert "2024-03-05\t-4,500\tStarbucks coffee" in added.stdout

    invoke(url, "add", "3000000", "-t", "income", "-c", "Salary", "--date", "2024-03-01")

    listed = invoke(url, "list", "--month", "2024-03")
    lines = listed.stdout.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("2024-03-05 00:00\t-4,500\tKRW\tFood")
    assert "\t3,000,000\tKRW\tSalary" in lines[1]

    found = invoke(url, "list", "--search", "COFFEE")
    assert len(found.stdout.strip().splitlines()) == 1


def test_add_rejects_bad_input(url):
    invoke(url, "init-db")

    zero = invoke(url, "add", "0")
    assert zero.exit_code == 1
    assert "Error: amount must be greater than zero" in zero.output

    unknown = invoke(url, "add", "1000", "--category", "Salary")
    assert unknown.exit_code == 2


def test_summary(url):
    invoke(url, "init-db")
    invoke(url, "add", "3000000", "-t", "income", "-c", "Salary", "--date", "2024-03-01")
    invoke(url, "add", "4500", "-c", "Food", "--date", "2024-03-05")
    invoke(url, "add", "1200", "-c", "Transport", "--date", "2024-02-20")

    result = invoke(url, "summary", "--month", "2024-03")

    assert result.exit_code == 0, result.output
    assert "Income:        3,000,000" in result.stdout
    assert "Expense:       4,500" in result.stdout
    assert "Balance:       2,995,500" in result.stdout
    assert "Total balance: 2,994,300" in result.stdout
    assert "  Food\t4,500" in result.stdout


def test_process_recurring_and_budget_status(url):
    with LedgerEngine.open(LedgerConfig(database_url=url)) as engine:
        engine.recurring.create(
            10000, "expense", "monthly", datetime(2024, 1, 1), end_date=datetime(2024, 3, 1)
        )

    processed = invoke(url, "process-recurring", "--as-of", "2024-03-01")
    assert processed.exit_code == 0, processed.output
    assert "Created 3 transaction(s)." in processed.stdout
    assert "Auto-generated" in processed.stdout

    assert "No budgets." in invoke(url, "budget-status").stdout

    with LedgerEngine.open(LedgerConfig(database_url=url)) as engine:
        engine.budgets.create(10000)
        engine.ledger.create(9000, "expense")

    status = invoke(url, "budget-status")
    assert status.exit_code == 0, status.output
    assert "Total\tmonthly\twarning\t90.0%\tremaining 1,000" in status.stdout


def test_insights(url):
    invoke(url, "init-db")
    invoke(url, "add", "4500", "-c", "Food", "--note", "lunch")

    result = invoke(url, "insights", "--months", "6")
    assert result.exit_code == 0, result.output
    assert "Top expenses:" in result.stdout
    assert "1. " in result.stdout

    assert invoke(url, "insights", "--months", "5").exit_code == 2


def test_unknown_log_level_is_reported(url):
    result = invoke(url, "--log-level", "chatty", "init-db")
    assert result.exit_code == 1
    assert "unknown log level" in result.output


def test_suggest_and_learn(url):
    invoke(url, "init-db")

    assert invoke(url, "suggest", "Starbucks coffee").stdout.strip() == "Food"
    assert invoke(url, "suggest", "bonus", "-t", "income").stdout.strip() == "Salary"

    missing = invoke(url, "suggest", "mystore")
    assert missing.exit_code == 1
    assert "No suggestion." in missing.stdout

    invoke(url, "add", "12000", "-c", "Shopping", "--note", "mystore")
    assert invoke(url, "suggest", "mystore").stdout.strip() == "Shopping"

    invoke(url, "add", "8000", "--note", "mystore socks", "--date", "2024-03-06")
    listed = invoke(url, "list", "--search", "socks")
    assert "\tShopping\tmystore socks" in listed.stdout
