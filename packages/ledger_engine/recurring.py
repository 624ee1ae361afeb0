"""Recurring templates: repository, scheduler and calendar projection.

The scheduler materializes every due template into a ledger transaction dated
at the template's *current* ``next_due_date`` (not the processing instant),
then advances the template by one calendar unit. It keeps passing over the
templates until nothing is due at ``as_of``, so a backlog left by a dormant
host yields one transaction per missed period. All transactions and template
changes of one ``process_all_due`` call commit together.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import select

from db.models.ledger import LedgerRecurringTransaction

from .errors import InvalidData, NotFound
from .logging_setup import get_logger
from .models import (
    Currency,
    RecurringFrequency,
    RecurringTransaction,
    Transaction,
    TransactionType,
)
from .storage import Repository, to_recurring, to_transaction
from .transactions import UNSET, check_category, coerce_amount, coerce_type, insert_transaction

logger = get_logger(__name__)


def auto_generated_note(note: str, label: str) -> str:
    """``"<note> (<label>)"``, or just ``label`` when the note is empty."""

    note = (note or "").strip()
    return f"{note} ({label})" if note else label


def _coerce_frequency(raw: RecurringFrequency | str) -> RecurringFrequency:
    try:
        return RecurringFrequency(raw)
    except ValueError:
        raise InvalidData(f"unknown recurring frequency: {raw!r}") from None


def _check_window(start: datetime, end: datetime | None) -> None:
    if end is not None and end < start:
        raise InvalidData("end_date must not precede start_date")


class RecurringRepository(Repository):
    """CRUD for recurring templates plus the scheduler entrypoint."""

    def create(
        self,
        amount: Any,
        type: TransactionType | str,
        frequency: RecurringFrequency | str,
        start_date: datetime,
        *,
        category_id: uuid.UUID | None = None,
        note: str = "",
        end_date: datetime | None = None,
    ) -> RecurringTransaction:
        value = coerce_amount(amount)
        tx_type = coerce_type(type)
        freq = _coerce_frequency(frequency)
        _check_window(start_date, end_date)
        with self._saving("create recurring transaction") as session:
            check_category(session, category_id, tx_type)
            row = LedgerRecurringTransaction(
                id=uuid.uuid4(),
                amount=value,
                type=tx_type.value,
                category_id=category_id,
                note=note or "",
                frequency=freq.value,
                start_date=start_date,
                end_date=end_date,
                next_due_date=start_date,
                is_active=True,
                last_processed_date=None,
                created_at=self.ctx.now(),
            )
            session.add(row)
            session.flush()
            return to_recurring(row)

    def update(
        self,
        recurring_id: uuid.UUID,
        *,
        amount: Any = UNSET,
        type: TransactionType | str = UNSET,
        frequency: RecurringFrequency | str = UNSET,
        category_id: uuid.UUID | None = UNSET,
        note: str = UNSET,
        start_date: datetime = UNSET,
        end_date: datetime | None = UNSET,
    ) -> RecurringTransaction:
        """Apply a user edit.

        Moving ``start_date`` of a template that never ran also moves its
        ``next_due_date``; once processed, the schedule continues from where it
        is.
        """

        with self._saving("update recurring transaction") as session:
            row = session.get(LedgerRecurringTransaction, recurring_id)
            if row is None:
                raise NotFound("recurring transaction", recurring_id)
            if amount is not UNSET:
                row.amount = coerce_amount(amount)
            if type is not UNSET:
                row.type = coerce_type(type).value
            if frequency is not UNSET:
                row.frequency = _coerce_frequency(frequency).value
            if category_id is not UNSET:
                row.category_id = category_id
            if note is not UNSET:
                row.note = note or ""
            if start_date is not UNSET:
                row.start_date = start_date
                if row.last_processed_date is None:
                    row.next_due_date = start_date
            if end_date is not UNSET:
                row.end_date = end_date
            _check_window(row.start_date, row.end_date)
            check_category(session, row.category_id, TransactionType(row.type))
            session.flush()
            return to_recurring(row)

    def deactivate(self, recurring_id: uuid.UUID) -> RecurringTransaction:
        with self._saving("deactivate recurring transaction") as session:
            row = session.get(LedgerRecurringTransaction, recurring_id)
            if row is None:
                raise NotFound("recurring transaction", recurring_id)
            row.is_active = False
            session.flush()
            return to_recurring(row)

    def delete(self, recurring: RecurringTransaction | uuid.UUID) -> None:
        recurring_id = recurring.id if isinstance(recurring, RecurringTransaction) else recurring
        with self._deleting("delete recurring transaction") as session:
            row = session.get(LedgerRecurringTransaction, recurring_id)
            if row is None:
                raise NotFound("recurring transaction", recurring_id)
            session.delete(row)

    def get(self, recurring_id: uuid.UUID) -> RecurringTransaction:
        with self._reading("get recurring transaction") as session:
            row = session.get(LedgerRecurringTransaction, recurring_id)
            if row is None:
                raise NotFound("recurring transaction", recurring_id)
            return to_recurring(row)

    def fetch_all(self) -> list[RecurringTransaction]:
        with self._reading("fetch recurring transactions") as session:
            rows = session.scalars(
                select(LedgerRecurringTransaction).order_by(
                    LedgerRecurringTransaction.next_due_date, LedgerRecurringTransaction.id
                )
            ).all()
            return [to_recurring(r) for r in rows]

    def fetch_active(self) -> list[RecurringTransaction]:
        return [r for r in self.fetch_all() if r.is_active]

    def fetch_due(self, as_of: datetime | None = None) -> list[RecurringTransaction]:
        when = as_of or self.ctx.now()
        return [r for r in self.fetch_all() if r.should_process(when)]

    # ---- scheduler ----------------------------------------------------------

    def process_all_due(self, as_of: datetime | None = None) -> list[Transaction]:
        """Materialize every due occurrence up to ``as_of`` in one atomic batch.

        Returns the created transactions in materialization order. Calling it
        again at the same instant returns an empty list.
        """

        when = as_of or self.ctx.now()
        now = self.ctx.now()
        label = self.ctx.config.auto_generated_label
        currency = self.ctx.config.default_currency
        created = []

        with self._saving("process due recurring transactions") as session:
            while True:
                candidates = session.scalars(
                    select(LedgerRecurringTransaction)
                    .where(
                        LedgerRecurringTransaction.is_active.is_(True),
                        LedgerRecurringTransaction.next_due_date <= when,
                    )
                    .order_by(
                        LedgerRecurringTransaction.next_due_date, LedgerRecurringTransaction.id
                    )
                ).all()
                due = [row for row in candidates if to_recurring(row).should_process(when)]
                if not due:
                    break
                for row in due:
                    template = to_recurring(row)
                    tx_row = insert_transaction(
                        session,
                        now=now,
                        amount=template.amount,
                        type=template.type,
                        date=template.next_due_date,
                        note=auto_generated_note(template.note, label),
                        category_id=template.category_id,
                        currency=currency,
                    )
                    advanced = template.advanced()
                    row.last_processed_date = advanced.last_processed_date
                    row.next_due_date = advanced.next_due_date
                    row.is_active = advanced.is_active
                    created.append(to_transaction(tx_row))
                    logger.info(
                        "materialized recurring %s due %s as transaction %s",
                        template.id,
                        template.next_due_date.isoformat(),
                        tx_row.id,
                    )
                    if not advanced.is_active:
                        logger.info("recurring %s reached its end date", template.id)
                session.flush()

        return created


def project_recurring(
    templates: Iterable[RecurringTransaction],
    start: datetime,
    end: datetime,
    currency: Currency,
    *,
    label: str = "Auto-generated",
) -> list[Transaction]:
    """Unsaved transactions for each occurrence of active templates in ``[start, end]``.

    Occurrences are stepped from each template's ``start_date`` and stop at
    its ``end_date``; nothing is persisted and no template changes.
    """

    projected: list[Transaction] = []
    for template in templates:
        if not template.is_active:
            continue
        if template.end_date is not None and template.end_date < start:
            continue
        cursor = template.start_date
        while cursor < start:
            cursor = template.frequency.advance(cursor)
        while cursor <= end:
            if template.end_date is not None and cursor > template.end_date:
                break
            projected.append(
                Transaction(
                    id=uuid.uuid4(),
                    amount=template.amount,
                    type=template.type,
                    date=cursor,
                    note=auto_generated_note(template.note, label),
                    category_id=template.category_id,
                    currency=currency,
                )
            )
            cursor = template.frequency.advance(cursor)
    projected.sort(key=lambda tx: tx.date)
    return projected


__all__ = [
    "RecurringRepository",
    "auto_generated_note",
    "project_recurring",
]
