"""Wallets, tags and savings goals.

These entities hang off the ledger without feeding its statistics: wallets
are an optional reference on transactions (nulled when the wallet goes away),
tags are matched by name, and savings goals track progress on their own.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update

from db.models.ledger import LedgerSavingsGoal, LedgerTag, LedgerTransaction, LedgerWallet

from .categories import normalize_name
from .errors import InvalidData, NotFound
from .models import SavingsGoal, Tag, Wallet
from .storage import Repository, to_savings_goal, to_tag, to_wallet
from .transactions import UNSET, coerce_amount, parse_decimal


def _required_name(name: str, kind: str) -> str:
    n = normalize_name(name or "")
    if not n:
        raise InvalidData(f"{kind} name cannot be empty")
    return n


def _non_negative(raw: Any, what: str) -> Decimal:
    value = parse_decimal(raw, what)
    if value < 0:
        raise InvalidData(f"{what} must be zero or more, got {raw!r}")
    return value


# ---------------------------
# Wallets
# ---------------------------


class WalletRepository(Repository):
    def create(
        self,
        name: str,
        *,
        icon: str = "creditcard.fill",
        color_hex: str = "#007AFF",
        balance: Any = 0,
        is_default: bool = False,
    ) -> Wallet:
        with self._saving("create wallet") as session:
            if is_default:
                session.execute(update(LedgerWallet).values(is_default=False))
            current = session.scalar(select(func.max(LedgerWallet.sort_order)))
            row = LedgerWallet(
                id=uuid.uuid4(),
                name=_required_name(name, "wallet"),
                icon=icon,
                color_hex=color_hex,
                balance=parse_decimal(balance, "wallet balance"),
                is_default=is_default,
                is_archived=False,
                sort_order=0 if current is None else current + 1,
                created_at=self.ctx.now(),
            )
            session.add(row)
            session.flush()
            return to_wallet(row)

    def update(
        self,
        wallet_id: uuid.UUID,
        *,
        name: str | None = None,
        icon: str | None = None,
        color_hex: str | None = None,
        balance: Any = None,
        is_archived: bool | None = None,
    ) -> Wallet:
        with self._saving("update wallet") as session:
            row = session.get(LedgerWallet, wallet_id)
            if row is None:
                raise NotFound("wallet", wallet_id)
            if name is not None:
                row.name = _required_name(name, "wallet")
            if icon is not None:
                row.icon = icon
            if color_hex is not None:
                row.color_hex = color_hex
            if balance is not None:
                row.balance = parse_decimal(balance, "wallet balance")
            if is_archived is not None:
                row.is_archived = is_archived
            session.flush()
            return to_wallet(row)

    def set_default(self, wallet_id: uuid.UUID) -> Wallet:
        with self._saving("set default wallet") as session:
            row = session.get(LedgerWallet, wallet_id)
            if row is None:
                raise NotFound("wallet", wallet_id)
            session.execute(
                update(LedgerWallet).where(LedgerWallet.id != wallet_id).values(is_default=False)
            )
            row.is_default = True
            session.flush()
            return to_wallet(row)

    def delete(self, wallet: Wallet | uuid.UUID) -> None:
        wallet_id = wallet.id if isinstance(wallet, Wallet) else wallet
        with self._deleting("delete wallet") as session:
            row = session.get(LedgerWallet, wallet_id)
            if row is None:
                raise NotFound("wallet", wallet_id)
            session.execute(
                update(LedgerTransaction)
                .where(LedgerTransaction.wallet_id == wallet_id)
                .values(wallet_id=None)
            )
            session.delete(row)

    def get(self, wallet_id: uuid.UUID) -> Wallet:
        with self._reading("get wallet") as session:
            row = session.get(LedgerWallet, wallet_id)
            if row is None:
                raise NotFound("wallet", wallet_id)
            return to_wallet(row)

    def fetch_all(self, *, include_archived: bool = False) -> list[Wallet]:
        stmt = select(LedgerWallet).order_by(LedgerWallet.sort_order)
        if not include_archived:
            stmt = stmt.where(LedgerWallet.is_archived.is_(False))
        with self._reading("fetch wallets") as session:
            return [to_wallet(r) for r in session.scalars(stmt).all()]


# ---------------------------
# Tags
# ---------------------------


class TagRepository(Repository):
    def create(self, name: str, *, color_hex: str = "#007AFF") -> Tag:
        tag_name = _required_name(name, "tag")
        with self._saving("create tag") as session:
            if session.scalar(select(LedgerTag.id).where(LedgerTag.name == tag_name)) is not None:
                raise InvalidData(f"tag {tag_name!r} already exists")
            row = LedgerTag(
                id=uuid.uuid4(),
                name=tag_name,
                color_hex=color_hex,
                usage_count=0,
                created_at=self.ctx.now(),
            )
            session.add(row)
            session.flush()
            return to_tag(row)

    def rename(self, tag_id: uuid.UUID, name: str) -> Tag:
        """Rename a tag and the matching entry in every tagged transaction."""

        new_name = _required_name(name, "tag")
        with self._saving("rename tag") as session:
            row = session.get(LedgerTag, tag_id)
            if row is None:
                raise NotFound("tag", tag_id)
            old_name = row.name
            if new_name == old_name:
                return to_tag(row)
            taken = session.scalar(select(LedgerTag.id).where(LedgerTag.name == new_name))
            if taken is not None:
                raise InvalidData(f"tag {new_name!r} already exists")
            row.name = new_name
            for tx in session.scalars(select(LedgerTransaction)).all():
                if old_name in (tx.tag_names or ()):
                    renamed = (new_name if t == old_name else t for t in tx.tag_names)
                    tx.tag_names = list(dict.fromkeys(renamed))
            session.flush()
            return to_tag(row)

    def delete(self, tag: Tag | uuid.UUID) -> None:
        tag_id = tag.id if isinstance(tag, Tag) else tag
        with self._deleting("delete tag") as session:
            row = session.get(LedgerTag, tag_id)
            if row is None:
                raise NotFound("tag", tag_id)
            session.delete(row)

    def fetch_all(self) -> list[Tag]:
        """Tags, most used first."""

        with self._reading("fetch tags") as session:
            rows = session.scalars(
                select(LedgerTag).order_by(LedgerTag.usage_count.desc(), LedgerTag.name)
            ).all()
            return [to_tag(r) for r in rows]


# ---------------------------
# Savings goals
# ---------------------------


class SavingsGoalRepository(Repository):
    def create(
        self,
        name: str,
        target_amount: Any,
        *,
        deadline: datetime | None = None,
        icon: str = "target",
        color_hex: str = "#007AFF",
        note: str = "",
    ) -> SavingsGoal:
        with self._saving("create savings goal") as session:
            row = LedgerSavingsGoal(
                id=uuid.uuid4(),
                name=_required_name(name, "savings goal"),
                target_amount=_non_negative(target_amount, "target amount"),
                current_amount=Decimal(0),
                deadline=deadline,
                icon=icon,
                color_hex=color_hex,
                note=note or "",
                created_at=self.ctx.now(),
                is_completed=False,
                completed_at=None,
            )
            session.add(row)
            session.flush()
            return to_savings_goal(row)

    def update(
        self,
        goal_id: uuid.UUID,
        *,
        name: str | None = None,
        target_amount: Any = None,
        deadline: datetime | None = UNSET,
        note: str | None = None,
    ) -> SavingsGoal:
        with self._saving("update savings goal") as session:
            row = self._get_row(session, goal_id)
            if name is not None:
                row.name = _required_name(name, "savings goal")
            if target_amount is not None:
                row.target_amount = _non_negative(target_amount, "target amount")
            if deadline is not UNSET:
                row.deadline = deadline
            if note is not None:
                row.note = note
            session.flush()
            return to_savings_goal(row)

    def add_savings(self, goal_id: uuid.UUID, amount: Any) -> SavingsGoal:
        value = coerce_amount(amount)
        with self._saving("add savings") as session:
            row = self._get_row(session, goal_id)
            goal = to_savings_goal(row).with_savings_added(value, self.ctx.now())
            self._apply(row, goal)
            session.flush()
            return goal

    def withdraw_savings(self, goal_id: uuid.UUID, amount: Any) -> SavingsGoal:
        value = coerce_amount(amount)
        with self._saving("withdraw savings") as session:
            row = self._get_row(session, goal_id)
            goal = to_savings_goal(row).with_savings_withdrawn(value)
            self._apply(row, goal)
            session.flush()
            return goal

    def delete(self, goal: SavingsGoal | uuid.UUID) -> None:
        goal_id = goal.id if isinstance(goal, SavingsGoal) else goal
        with self._deleting("delete savings goal") as session:
            session.delete(self._get_row(session, goal_id))

    def get(self, goal_id: uuid.UUID) -> SavingsGoal:
        with self._reading("get savings goal") as session:
            return to_savings_goal(self._get_row(session, goal_id))

    def fetch_all(self) -> list[SavingsGoal]:
        """Open goals first (by deadline, undated last), then completed ones."""

        with self._reading("fetch savings goals") as session:
            rows = session.scalars(
                select(LedgerSavingsGoal).order_by(
                    LedgerSavingsGoal.is_completed,
                    LedgerSavingsGoal.deadline.is_(None),
                    LedgerSavingsGoal.deadline,
                    LedgerSavingsGoal.created_at,
                )
            ).all()
            return [to_savings_goal(r) for r in rows]

    @staticmethod
    def _get_row(session, goal_id: uuid.UUID) -> LedgerSavingsGoal:
        row = session.get(LedgerSavingsGoal, goal_id)
        if row is None:
            raise NotFound("savings goal", goal_id)
        return row

    @staticmethod
    def _apply(row: LedgerSavingsGoal, goal: SavingsGoal) -> None:
        row.current_amount = goal.current_amount
        row.is_completed = goal.is_completed
        row.completed_at = goal.completed_at


__all__ = ["SavingsGoalRepository", "TagRepository", "WalletRepository"]
