# ruff: noqa: I001
"""CLI for the ``ledger_engine`` package.

A Typer console interface over :class:`ledger_engine.api.LedgerEngine`.
Environment variables (``LEDGER_DATABASE_URL`` and the other ``LEDGER_*``
settings) are loaded from a local ``.env`` with ``python-dotenv`` before any
command runs. Business logic lives in the repositories; commands only parse
arguments, call the engine and print results.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .analytics import InsightPeriod
from .api import LedgerEngine
from .config import LedgerConfig
from .errors import LedgerError
from .logging_setup import configure_logging
from .models import Currency, TransactionType
from .query import month_bounds
from .transactions import LedgerRepository


# ---- Small module-level helpers used by CLI commands -------------------------


def _open_engine(ctx: typer.Context) -> LedgerEngine:
    state = ctx.find_root().obj or {}
    return LedgerEngine.open(state.get("config") or LedgerConfig.from_env())


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(1)


def _fmt(amount: Decimal, currency: Currency | str = Currency.KRW) -> str:
    places = Currency(currency).decimal_places
    return f"{amount:,.{places}f}"


def _parse_month(raw: str | None, now: datetime) -> datetime:
    if not raw:
        return datetime(now.year, now.month, 1)
    try:
        return datetime.strptime(raw, "%Y-%m")
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM, got {raw!r}") from None


def _category_names(engine: LedgerEngine) -> dict:
    return {c.id: c.name for c in engine.categories.fetch_all()}


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Personal ledger: record transactions, track budgets, run recurring "
        "templates and print spending insights. Reads LEDGER_* settings from a "
        "local .env."
    ),
)

# Module-level option objects keep calls out of parameter defaults (ruff B008).
DATE_OPTION: OptionInfo = typer.Option(
    None,
    "--date",
    help="Economic date of the transaction (defaults to now).",
    formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"],
)
AS_OF_OPTION: OptionInfo = typer.Option(
    None,
    "--as-of",
    help="Process as of this instant (defaults to now).",
    formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"],
)
TAG_OPTION: OptionInfo = typer.Option(
    None, "--tag", help="Tag name; repeat for several tags."
)


@app.command("init-db")
def init_db_cmd(
    ctx: typer.Context,
    *,
    seed: bool = typer.Option(True, help="Insert the default categories when missing."),
) -> None:
    """Create the ledger tables and optionally seed default categories."""

    try:
        with _open_engine(ctx) as engine:
            created = engine.categories.seed_defaults() if seed else 0
    except LedgerError as e:
        raise _fail(e) from e
    typer.echo(f"Database ready ({created} default categories created).")


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    amount: Annotated[str, typer.Argument(help="Positive amount, e.g. 4500 or 12.50.")],
    *,
    type: TransactionType = typer.Option(TransactionType.EXPENSE, "--type", "-t"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category name."),
    note: str = typer.Option("", "--note", "-n"),
    date: datetime | None = DATE_OPTION,
    currency: str | None = typer.Option(None, help="Currency code (defaults to config)."),
    tags: list[str] | None = TAG_OPTION,
) -> None:
    """Record one transaction.

    Without ``--category`` the category is suggested from the note; with one,
    the note's words are learned for that category.
    """

    try:
        with _open_engine(ctx) as engine:
            category_id = None
            if category:
                found = engine.categories.find(category, type)
                if found is None:
                    raise typer.BadParameter(f"unknown {type.value} category: {category!r}")
                category_id = found.id
            tx = engine.record(
                amount,
                type,
                category_id=category_id,
                note=note,
                date=date,
                currency=currency,
                tag_names=tags or (),
            )
    except LedgerError as e:
        raise _fail(e) from e
    typer.echo(f"{tx.id}\t{tx.date:%Y-%m-%d}\t{_fmt(tx.signed_amount, tx.currency)}\t{tx.note}")


@app.command("suggest")
def suggest_cmd(
    ctx: typer.Context,
    note: Annotated[str, typer.Argument(help="Transaction note to categorize.")],
    *,
    type: TransactionType = typer.Option(TransactionType.EXPENSE, "--type", "-t"),
) -> None:
    """Print the category a note would be filed under."""

    try:
        with _open_engine(ctx) as engine:
            category = engine.suggestions.suggest(note, type)
    except LedgerError as e:
        raise _fail(e) from e
    if category is None:
        typer.echo("No suggestion.")
        raise typer.Exit(1)
    typer.echo(category.name)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    *,
    search: str | None = typer.Option(None, help="Case-insensitive text to find in notes."),
    month: str | None = typer.Option(None, help="Only this month (YYYY-MM)."),
    limit: int = typer.Option(50, min=1, help="Maximum rows to print."),
) -> None:
    """List transactions, newest first."""

    try:
        with _open_engine(ctx) as engine:
            ledger: LedgerRepository = engine.ledger
            if search:
                rows = ledger.search(search)
            elif month:
                start = _parse_month(month, engine.ctx.now())
                rows = ledger.fetch_range(*month_bounds(start))
            else:
                rows = ledger.fetch_all()
            names = _category_names(engine)
    except LedgerError as e:
        raise _fail(e) from e
    for tx in rows[:limit]:
        category = names.get(tx.category_id, "-")
        typer.echo(
            f"{tx.date:%Y-%m-%d %H:%M}\t{_fmt(tx.signed_amount, tx.currency)}\t"
            f"{tx.currency}\t{category}\t{tx.note}"
        )


@app.command("summary")
def summary_cmd(
    ctx: typer.Context,
    *,
    month: str | None = typer.Option(None, help="Month to summarize (YYYY-MM, default current)."),
) -> None:
    """Income, expense and balance for a month plus the expense breakdown."""

    try:
        with _open_engine(ctx) as engine:
            start, end = month_bounds(_parse_month(month, engine.ctx.now()))
            summary = engine.ledger.summary(start, end)
            by_category = engine.ledger.expense_by_category(start, end)
            total_balance = engine.ledger.total_balance()
            names = _category_names(engine)
            currency = engine.config.default_currency
    except LedgerError as e:
        raise _fail(e) from e
    typer.echo(f"Month:         {start:%Y-%m}")
    typer.echo(f"Income:        {_fmt(summary.total_income, currency)}")
    typer.echo(f"Expense:       {_fmt(summary.total_expense, currency)}")
    typer.echo(f"Balance:       {_fmt(summary.balance, currency)}")
    typer.echo(f"Total balance: {_fmt(total_balance, currency)}")
    for row in by_category:
        typer.echo(f"  {names.get(row.category_id, row.category_id)}\t{_fmt(row.amount, currency)}")


@app.command("process-recurring")
def process_recurring_cmd(
    ctx: typer.Context,
    *,
    as_of: datetime | None = AS_OF_OPTION,
) -> None:
    """Materialize every due recurring transaction (including missed periods)."""

    try:
        with _open_engine(ctx) as engine:
            created = engine.recurring.process_all_due(as_of)
    except LedgerError as e:
        raise _fail(e) from e
    for tx in created:
        typer.echo(f"{tx.date:%Y-%m-%d}\t{_fmt(tx.signed_amount, tx.currency)}\t{tx.note}")
    typer.echo(f"Created {len(created)} transaction(s).")


@app.command("budget-status")
def budget_status_cmd(ctx: typer.Context) -> None:
    """Show every budget with its status for the current period."""

    try:
        with _open_engine(ctx) as engine:
            overview = engine.budget_overview()
            names = _category_names(engine)
            currency = engine.config.default_currency
    except LedgerError as e:
        raise _fail(e) from e
    if not overview:
        typer.echo("No budgets.")
        return
    for budget, status in overview:
        scope = "Total" if budget.is_total else names.get(budget.category_id, "?")
        detail = (
            f"overspent {_fmt(status.overspent, currency)}"
            if status.overspent
            else f"remaining {_fmt(status.remaining, currency)}"
        )
        typer.echo(
            f"{scope}\t{budget.period}\t{status.kind.value}\t{status.percentage:.1f}%\t{detail}"
        )


@app.command("insights")
def insights_cmd(
    ctx: typer.Context,
    *,
    months: int = typer.Option(3, help="Window length in months: 3, 6 or 12."),
) -> None:
    """Print trends, category breakdown, top expenses and detected patterns."""

    try:
        period = InsightPeriod(months)
    except ValueError:
        raise typer.BadParameter("months must be 3, 6 or 12") from None
    try:
        with _open_engine(ctx) as engine:
            report = engine.insights_report(period)
            names = _category_names(engine)
            currency = engine.config.default_currency
    except LedgerError as e:
        raise _fail(e) from e

    typer.echo(f"Insights {report.window_start:%Y-%m-%d} .. {report.window_end:%Y-%m-%d}")
    typer.echo("Trends:")
    for trend in report.trends:
        change = ""
        if trend.change_percentage is not None:
            change = f"\t{trend.change_percentage:+.1f}%"
        typer.echo(
            f"  {trend.label}\t+{_fmt(trend.income, currency)}\t"
            f"-{_fmt(trend.expense, currency)}\t{_fmt(trend.balance, currency)}{change}"
        )
    typer.echo("Categories:")
    for row in report.category_breakdown:
        typer.echo(
            f"  {names.get(row.category_id, '?')}\t{_fmt(row.amount, currency)}\t"
            f"{row.percentage:.1f}%\t{row.transaction_count}"
        )
    typer.echo("Top expenses:")
    for item in report.top_expenses:
        tx = item.transaction
        typer.echo(f"  {item.rank}. {tx.date:%Y-%m-%d}\t{_fmt(tx.amount, tx.currency)}\t{tx.note}")
    if report.recurring_patterns:
        typer.echo("Recurring patterns:")
        for p in report.recurring_patterns:
            typer.echo(
                f"  {names.get(p.category_id, '?')}\t{p.frequency.value}\t"
                f"{_fmt(p.average_amount, currency)}\tnext {p.next_expected:%Y-%m-%d}\t"
                f"confidence {p.confidence:.2f}"
            )


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override LEDGER_DATABASE_URL (falls back to env var)."
    ),
    log_level: str | None = typer.Option(
        None, help="Logging level (defaults to LEDGER_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding
    already-set variables) and configures logging once for every subcommand.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        config = LedgerConfig.from_env(database_url=database_url, log_level=log_level)
        configure_logging(config.log_level)
    except ValueError as exc:
        raise _fail(exc) from None
    ctx.obj = {"config": config}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script shim
    app()


if __name__ == "__main__":  # pragma: no cover
    app()
