"""Ledger repository: CRUD, range queries and statistics over transactions.

Every public method runs inside one gated ``session_scope``; storage failures
surface as ``SaveFailed``/``FetchFailed``/``DeleteFailed`` and validation
problems as ``InvalidData``/``NotFound``. Statistics are folded in a single
pass over the rows of the requested range.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.ledger import LedgerCategory, LedgerTag, LedgerTransaction, LedgerWallet

from . import query
from .errors import InvalidData, NotFound
from .logging_setup import get_logger
from .models import Currency, GeoLocation, Transaction, TransactionType
from .query import SortKey
from .storage import Repository, to_transaction

logger = get_logger(__name__)


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "UNSET"


# Sentinel for ``update``: distinguishes "leave as is" from an explicit None.
UNSET: Any = _Unset()


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    category_id: uuid.UUID
    amount: Decimal


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    total_income: Decimal
    total_expense: Decimal

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense


# ---------------------------
# Validation helpers
# ---------------------------


# Finest precision any supported currency records.
MAX_AMOUNT_PLACES = max(c.decimal_places for c in Currency)
_SMALLEST_UNIT = Decimal(10) ** -MAX_AMOUNT_PLACES


def parse_decimal(raw: Any, what: str = "amount") -> Decimal:
    """Parse ``raw`` into a finite ``Decimal`` of at most ``MAX_AMOUNT_PLACES`` places.

    Raises ``InvalidData`` for anything that is not a number, is infinite or
    NaN, or is finer than a cent (``Decimal("0.004")``).
    """

    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise InvalidData(f"{what} is not a number: {raw!r}") from None
    if not value.is_finite():
        raise InvalidData(f"{what} must be a finite number, got {raw!r}")
    try:
        exact = value == value.quantize(_SMALLEST_UNIT)
    except InvalidOperation:
        raise InvalidData(f"{what} is too large: {raw!r}") from None
    if not exact:
        raise InvalidData(f"{what} has more than {MAX_AMOUNT_PLACES} decimal places: {raw!r}")
    return value


def coerce_amount(raw: Any) -> Decimal:
    """Return ``raw`` as a strictly positive ``Decimal`` or raise ``InvalidData``."""

    amount = parse_decimal(raw)
    if amount <= 0:
        raise InvalidData(f"amount must be greater than zero, got {raw!r}")
    return amount


def coerce_type(raw: TransactionType | str) -> TransactionType:
    try:
        return TransactionType(raw)
    except ValueError:
        raise InvalidData(f"unknown transaction type: {raw!r}") from None


def coerce_currency(raw: Currency | str) -> Currency:
    try:
        return Currency.parse(str(raw))
    except ValueError as exc:
        raise InvalidData(str(exc)) from None


def _check_location(location: GeoLocation | None) -> None:
    if location is None:
        return
    parts = (location.latitude, location.longitude, location.name)
    if any(p is None for p in parts) or not str(location.name).strip():
        raise InvalidData("geolocation requires latitude, longitude and a name together")


def check_category(
    session: Session, category_id: uuid.UUID | None, tx_type: TransactionType
) -> None:
    """Ensure ``category_id`` exists and matches the direction ``tx_type``."""

    if category_id is None:
        return
    row = session.get(LedgerCategory, category_id)
    if row is None:
        raise NotFound("category", category_id)
    if row.type != tx_type.value:
        raise InvalidData(
            f"category {row.name!r} is a {row.type} category; cannot attach to {tx_type.value}"
        )


def _check_wallet(session: Session, wallet_id: uuid.UUID | None) -> None:
    if wallet_id is not None and session.get(LedgerWallet, wallet_id) is None:
        raise NotFound("wallet", wallet_id)


def _normalize_tags(tag_names: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for name in tag_names:
        n = " ".join(str(name).split())
        if n and n not in seen:
            seen.append(n)
    return seen


def _bump_tag_usage(session: Session, tag_names: Sequence[str]) -> None:
    if not tag_names:
        return
    rows = session.scalars(select(LedgerTag).where(LedgerTag.name.in_(tag_names))).all()
    for tag in rows:
        tag.usage_count += 1


def insert_transaction(
    session: Session,
    *,
    now: datetime,
    amount: Any,
    type: TransactionType | str,
    date: datetime,
    note: str = "",
    category_id: uuid.UUID | None = None,
    currency: Currency | str = Currency.KRW,
    receipt_image: bytes | None = None,
    tag_names: Iterable[str] = (),
    location: GeoLocation | None = None,
    wallet_id: uuid.UUID | None = None,
) -> LedgerTransaction:
    """Validate and add one transaction row to ``session`` (not committed).

    Shared by the repository, the recurring scheduler and the importer so all
    three apply identical rules inside whatever transaction they own.
    """

    value = coerce_amount(amount)
    tx_type = coerce_type(type)
    code = coerce_currency(currency)
    _check_location(location)
    check_category(session, category_id, tx_type)
    _check_wallet(session, wallet_id)
    tags = _normalize_tags(tag_names)

    row = LedgerTransaction(
        id=uuid.uuid4(),
        amount=value,
        type=tx_type.value,
        category_id=category_id,
        wallet_id=wallet_id,
        note=note or "",
        date=date,
        currency_code=code.value,
        receipt_image=receipt_image,
        tag_names=tags,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        location_name=location.name if location else None,
        created_at=now,
        updated_at=now,
    )
    session.add(row)
    _bump_tag_usage(session, tags)
    session.flush()
    return row


# ---------------------------
# Repository
# ---------------------------


class LedgerRepository(Repository):
    """CRUD and queries over ``ledger_transactions``."""

    # ---- commands -----------------------------------------------------------

    def create(
        self,
        amount: Any,
        type: TransactionType | str,
        *,
        category_id: uuid.UUID | None = None,
        note: str = "",
        date: datetime | None = None,
        currency: Currency | str | None = None,
        receipt_image: bytes | None = None,
        tag_names: Iterable[str] = (),
        location: GeoLocation | None = None,
        wallet_id: uuid.UUID | None = None,
    ) -> Transaction:
        """Persist a new transaction and return it.

        Parameters
        ----------
        amount:
            Strictly positive, at most ``MAX_AMOUNT_PLACES`` decimal places;
            anything else raises ``InvalidData``.
        type:
            ``income`` or ``expense``; the stored amount is never negative.
        date:
            Economic date of the entry. Defaults to the configured clock.
        currency:
            Defaults to ``LedgerConfig.default_currency``.
        """

        now = self.ctx.now()
        with self._saving("create transaction") as session:
            row = insert_transaction(
                session,
                now=now,
                amount=amount,
                type=type,
                date=date or now,
                note=note,
                category_id=category_id,
                currency=currency or self.ctx.config.default_currency,
                receipt_image=receipt_image,
                tag_names=tag_names,
                location=location,
                wallet_id=wallet_id,
            )
            created = to_transaction(row)
        logger.debug("created transaction %s (%s %s)", created.id, created.type, created.amount)
        return created

    def update(
        self,
        transaction_id: uuid.UUID,
        *,
        amount: Any = UNSET,
        type: TransactionType | str = UNSET,
        category_id: uuid.UUID | None = UNSET,
        note: str = UNSET,
        date: datetime = UNSET,
        currency: Currency | str = UNSET,
        receipt_image: bytes | None = UNSET,
        tag_names: Iterable[str] = UNSET,
        location: GeoLocation | None = UNSET,
        wallet_id: uuid.UUID | None = UNSET,
    ) -> Transaction:
        """Apply a user edit. Fields left as ``UNSET`` keep their value."""

        with self._saving("update transaction") as session:
            row = session.get(LedgerTransaction, transaction_id)
            if row is None:
                raise NotFound("transaction", transaction_id)

            if amount is not UNSET:
                row.amount = coerce_amount(amount)
            if type is not UNSET:
                row.type = coerce_type(type).value
            if category_id is not UNSET:
                row.category_id = category_id
            if note is not UNSET:
                row.note = note or ""
            if date is not UNSET:
                row.date = date
            if currency is not UNSET:
                row.currency_code = coerce_currency(currency).value
            if receipt_image is not UNSET:
                row.receipt_image = receipt_image
            if tag_names is not UNSET:
                row.tag_names = _normalize_tags(tag_names)
            if location is not UNSET:
                _check_location(location)
                row.latitude = location.latitude if location else None
                row.longitude = location.longitude if location else None
                row.location_name = location.name if location else None
            if wallet_id is not UNSET:
                _check_wallet(session, wallet_id)
                row.wallet_id = wallet_id

            # The (possibly new) category must still agree with the (possibly new) type.
            check_category(session, row.category_id, TransactionType(row.type))
            row.updated_at = self.ctx.now()
            session.flush()
            return to_transaction(row)

    def delete(self, transaction: Transaction | uuid.UUID) -> None:
        tx_id = transaction.id if isinstance(transaction, Transaction) else transaction
        with self._deleting("delete transaction") as session:
            row = session.get(LedgerTransaction, tx_id)
            if row is None:
                raise NotFound("transaction", tx_id)
            session.delete(row)

    # ---- queries ------------------------------------------------------------

    def get(self, transaction_id: uuid.UUID) -> Transaction:
        with self._reading("get transaction") as session:
            row = session.get(LedgerTransaction, transaction_id)
            if row is None:
                raise NotFound("transaction", transaction_id)
            return to_transaction(row)

    def fetch_all(
        self, sort: SortKey | str = SortKey.DATE, *, descending: bool = True
    ) -> list[Transaction]:
        key = SortKey(sort)
        with self._reading("fetch transactions") as session:
            rows = session.scalars(
                select(LedgerTransaction).order_by(*query.order_by(key, descending=descending))
            ).all()
            return [to_transaction(r) for r in rows]

    def fetch_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """Transactions with ``start <= date <= end``, newest first."""

        with self._reading("fetch transactions in range") as session:
            rows = session.scalars(
                select(LedgerTransaction)
                .where(query.date_between(start, end))
                .order_by(*query.order_by(SortKey.DATE))
            ).all()
            return [to_transaction(r) for r in rows]

    def fetch_day(self, day: datetime) -> list[Transaction]:
        return self.fetch_range(*query.day_bounds(day))

    def fetch_current_month(self) -> list[Transaction]:
        return self.fetch_range(*query.month_bounds(self.ctx.now()))

    def search(self, text: str) -> list[Transaction]:
        """Case-insensitive substring search on ``note``, newest first."""

        if not text:
            return self.fetch_all()
        with self._reading("search transactions") as session:
            notes = session.execute(
                select(LedgerTransaction.id, LedgerTransaction.note).where(
                    LedgerTransaction.note != ""
                )
            ).all()
            hits = [tx_id for tx_id, note in notes if query.note_matches(note or "", text)]
            if not hits:
                return []
            rows = session.scalars(
                select(LedgerTransaction)
                .where(LedgerTransaction.id.in_(hits))
                .order_by(*query.order_by(SortKey.DATE))
            ).all()
            return [to_transaction(r) for r in rows]

    # ---- statistics ---------------------------------------------------------

    def summary(self, start: datetime, end: datetime) -> LedgerSummary:
        income = Decimal(0)
        expense = Decimal(0)
        with self._reading("summarize transactions") as session:
            for tx_type, amount in session.execute(
                select(LedgerTransaction.type, LedgerTransaction.amount).where(
                    query.date_between(start, end)
                )
            ):
                if tx_type == TransactionType.INCOME.value:
                    income += amount
                else:
                    expense += amount
        return LedgerSummary(total_income=income, total_expense=expense)

    def total_income(self, start: datetime, end: datetime) -> Decimal:
        return self.summary(start, end).total_income

    def total_expense(self, start: datetime, end: datetime) -> Decimal:
        return self.summary(start, end).total_expense

    def balance(self, start: datetime, end: datetime) -> Decimal:
        return self.summary(start, end).balance

    def total_balance(self) -> Decimal:
        """Sum of signed amounts over the entire history."""

        total = Decimal(0)
        with self._reading("total balance") as session:
            for tx_type, amount in session.execute(
                select(LedgerTransaction.type, LedgerTransaction.amount)
            ):
                total += amount if tx_type == TransactionType.INCOME.value else -amount
        return total

    def expense_by_category(self, start: datetime, end: datetime) -> list[CategoryTotal]:
        """Expense sums per category, largest first; uncategorized rows are skipped."""

        sums: dict[uuid.UUID, Decimal] = {}
        with self._reading("expense by category") as session:
            for category_id, amount in session.execute(
                select(LedgerTransaction.category_id, LedgerTransaction.amount).where(
                    query.date_between(start, end),
                    LedgerTransaction.type == TransactionType.EXPENSE.value,
                    LedgerTransaction.category_id.is_not(None),
                )
            ):
                sums[category_id] = sums.get(category_id, Decimal(0)) + amount
        ordered = sorted(sums.items(), key=lambda kv: (-kv[1], kv[0]))
        return [CategoryTotal(category_id=cid, amount=amt) for cid, amt in ordered]


__all__ = [
    "MAX_AMOUNT_PLACES",
    "UNSET",
    "CategoryTotal",
    "LedgerRepository",
    "LedgerSummary",
    "check_category",
    "coerce_amount",
    "coerce_currency",
    "coerce_type",
    "insert_transaction",
    "parse_decimal",
]
