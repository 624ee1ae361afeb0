"""Read-only export snapshot and record-by-record import.

This is the surface the backup collaborator talks to; file formats are its
business. ``snapshot`` resolves category and wallet references to names so a
record is meaningful on its own. ``import_records`` validates every record
with pydantic before writing anything, then resolves (or creates) each
category by ``(name, type)`` and calls ``LedgerRepository.create`` once per
record.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select

from db.models.ledger import LedgerCategory, LedgerTransaction, LedgerWallet

from .categories import find_by_name, insert_category
from .errors import InvalidData
from .logging_setup import get_logger
from .models import ExportRecord, ImportRecord, TransactionType
from .query import SortKey, order_by
from .storage import Repository
from .transactions import LedgerRepository

logger = get_logger(__name__)


def parse_records(records: Iterable[ImportRecord | Mapping[str, Any]]) -> list[ImportRecord]:
    """Validate raw records; the first invalid one raises ``InvalidData``."""

    parsed: list[ImportRecord] = []
    for index, record in enumerate(records):
        if isinstance(record, ImportRecord):
            parsed.append(record)
            continue
        try:
            parsed.append(ImportRecord.model_validate(record))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidData(f"record {index} is invalid: {problems}") from exc
    return parsed


class Exchange(Repository):
    def __init__(self, ledger: LedgerRepository) -> None:
        super().__init__(ledger.ctx)
        self._ledger = ledger

    def snapshot(self) -> list[ExportRecord]:
        """Every transaction as an export record, newest first."""

        with self._reading("export snapshot") as session:
            categories = dict(session.execute(select(LedgerCategory.id, LedgerCategory.name)).all())
            wallets = dict(session.execute(select(LedgerWallet.id, LedgerWallet.name)).all())
            rows = session.scalars(
                select(LedgerTransaction).order_by(*order_by(SortKey.DATE))
            ).all()
            return [
                ExportRecord(
                    id=row.id,
                    amount=row.amount,
                    type=TransactionType(row.type),
                    date=row.date,
                    note=row.note or "",
                    category_name=categories.get(row.category_id),
                    currency=row.currency_code,
                    tag_names=tuple(row.tag_names or ()),
                    latitude=row.latitude,
                    longitude=row.longitude,
                    location_name=row.location_name,
                    wallet_name=wallets.get(row.wallet_id),
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
                for row in rows
            ]

    def import_records(self, records: Iterable[ImportRecord | Mapping[str, Any]]) -> int:
        """Create one transaction per record and return how many were imported."""

        parsed = parse_records(records)
        resolved: dict[tuple[str, TransactionType], uuid.UUID] = {}
        imported = 0
        for record in parsed:
            category_id = None
            if record.category_name:
                key = (record.category_name.casefold(), record.type)
                if key not in resolved:
                    resolved[key] = self._resolve_category(record.category_name, record.type)
                category_id = resolved[key]
            self._ledger.create(
                record.amount,
                record.type,
                category_id=category_id,
                note=record.note,
                date=record.date,
                currency=record.currency,
                tag_names=record.tag_names,
                location=record.location,
            )
            imported += 1
        logger.info("imported %d transactions", imported)
        return imported

    def _resolve_category(self, name: str, tx_type: TransactionType) -> uuid.UUID:
        with self._saving("resolve import category") as session:
            row = find_by_name(session, name, tx_type)
            if row is None:
                row = insert_category(session, name=name, type=tx_type)
                logger.info("created %s category %r during import", tx_type.value, row.name)
            return row.id


__all__ = ["Exchange", "parse_records"]
