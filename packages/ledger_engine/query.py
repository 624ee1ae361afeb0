"""Filter and sort helpers for ledger queries.

Bounds are inclusive on both ends: a range ``[start, end]`` keeps every
transaction with ``start <= date <= end``. A "day" spans 00:00:00 through
23:59:59.999999 local time. Text search is case-insensitive substring
containment on ``note`` using ``str.casefold`` (so it behaves the same for
Hangul, accented Latin, and ASCII).

``date_between`` and ``order_by`` build SQL clauses; ``note_matches`` stays in
Python so matching does not depend on the backend collation.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Numeric, cast
from sqlalchemy.sql.expression import ColumnElement, UnaryExpression

from db.models.ledger import LedgerTransaction

from . import dates


class SortKey(StrEnum):
    DATE = "date"
    AMOUNT = "amount"
    CREATED_AT = "created_at"
    NOTE = "note"


def day_bounds(day: datetime) -> tuple[datetime, datetime]:
    return dates.start_of_day(day), dates.end_of_day(day)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    return dates.start_of_month(now), dates.end_of_month(now)


def date_between(start: datetime, end: datetime) -> ColumnElement[bool]:
    return LedgerTransaction.date.between(start, end)


def order_by(key: SortKey = SortKey.DATE, *, descending: bool = True) -> list[UnaryExpression]:
    column = getattr(LedgerTransaction, key.value)
    if key is SortKey.AMOUNT:
        # Stored as text; compare numerically.
        column = cast(column, Numeric)
    primary = column.desc() if descending else column.asc()
    tiebreak = LedgerTransaction.id.desc() if descending else LedgerTransaction.id.asc()
    return [primary, tiebreak]


def note_matches(note: str, query: str) -> bool:
    return query.casefold() in note.casefold()


__all__ = [
    "SortKey",
    "date_between",
    "day_bounds",
    "month_bounds",
    "note_matches",
    "order_by",
]
