"""Ledger records and their effect on account balances.

A record's total is ``amount * quantity``; positive totals are expenses,
negative totals income.  Cash and bank accounts carry the effect in
``balance`` (expense decreases it), credit cards in ``current_credit_used``
(expense increases it, never below zero).  Deleting a record applies the
opposite effect.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.errors import BadRequest, InsufficientCredit, NotFound
from bookkeeper.models.enums import AccountKind, NotificationType, PaymentMethod
from bookkeeper.models.schemas import RecordCreate
from bookkeeper.models.tables import Account, Record, UnclassifiedNote, UserLexicon
from bookkeeper.services.group_service import require_membership
from bookkeeper.services.ledger_service import LedgerService
from bookkeeper.services.notification_service import notify, record_message
from bookkeeper.utils.helpers import to_naive_utc

logger = logging.getLogger(__name__)

UNCLASSIFIED = "未分類"
FALLBACK_CATEGORY = "其他"


def payment_method_matches(method: PaymentMethod, kind: AccountKind) -> bool:
    if method == PaymentMethod.CARD:
        return kind == AccountKind.CREDIT_CARD
    return kind in (AccountKind.CASH, AccountKind.BANK)


def apply_to_account(account: Account, total: float) -> None:
    """Apply a signed record total to ``account`` in place."""
    if AccountKind(account.kind) == AccountKind.CREDIT_CARD:
        account.current_credit_used = max(0.0, float(account.current_credit_used or 0) + total)
    else:
        account.balance = float(account.balance or 0) - total


class RecordService:
    def __init__(self, ledger: Optional[LedgerService] = None) -> None:
        self.ledger = ledger or LedgerService()

    async def classify(
        self, db: AsyncSession, user_id: int, note: str, amount: Optional[float] = None
    ) -> Tuple[str, str]:
        """Pick a category for an uncategorised note.

        Uses the first lexicon term of the user found in the note.  Notes
        nothing matches fall back to ``其他`` and are queued as unclassified
        for later review.  Returns ``(category, source)``.
        """
        if not note:
            return FALLBACK_CATEGORY, "default"
        result = await db.execute(
            select(UserLexicon).where(UserLexicon.user_id == user_id).order_by(func.length(UserLexicon.term).desc())
        )
        for entry in result.scalars():
            if entry.term and entry.term in note:
                return entry.category, "lexicon"
        db.add(UnclassifiedNote(user_id=user_id, note=note, amount=amount))
        return FALLBACK_CATEGORY, "default"

    async def create_record(self, db: AsyncSession, user_id: int, payload: RecordCreate) -> Tuple[Record, str]:
        """Create a record and update its account; returns ``(record, classification_source)``."""
        if payload.group_id:
            await require_membership(db, user_id, payload.group_id)
        account = await self.ledger.get_owned_account(db, user_id, payload.account_id)
        kind = AccountKind(account.kind)
        if not payment_method_matches(payload.payment_method, kind):
            raise BadRequest("Payment method does not match the account type")

        total = float(payload.amount) * payload.quantity
        if total > 0 and kind == AccountKind.CREDIT_CARD and account.available_credit < total:
            raise InsufficientCredit(available=account.available_credit, required=total)

        note = payload.note or ""
        if payload.category and payload.category != UNCLASSIFIED:
            category, source = payload.category, "manual"
        else:
            category, source = await self.classify(db, user_id, note, total)

        record = Record(
            user_id=user_id,
            account_id=account.id,
            group_id=payload.group_id or None,
            amount=total,
            quantity=payload.quantity,
            category=category,
            note=note,
            payment_method=payload.payment_method,
        )
        if payload.created_at is not None:
            record.created_at = to_naive_utc(payload.created_at)
        db.add(record)
        apply_to_account(account, total)
        notify(db, [user_id], NotificationType.SYSTEM, record_message(total, note, category))
        await db.commit()
        await db.refresh(record)
        logger.info("User %s recorded %.2f on account %s (%s)", user_id, total, account.id, source)
        return record, source

    async def list_records(
        self,
        db: AsyncSession,
        user_id: int,
        *,
        account_id: Optional[int] = None,
        group_id: Optional[int] = None,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[Sequence[Record], int]:
        criteria = [Record.user_id == user_id]
        if account_id is not None:
            criteria.append(Record.account_id == account_id)
        if group_id is not None:
            criteria.append(Record.group_id == group_id)
        if start is not None:
            criteria.append(Record.created_at >= to_naive_utc(start))
        if end is not None:
            criteria.append(Record.created_at < to_naive_utc(end))
        total = int((await db.execute(select(func.count(Record.id)).where(*criteria))).scalar() or 0)
        result = await db.execute(
            select(Record)
            .where(*criteria)
            .order_by(Record.created_at.desc(), Record.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all(), total

    async def get_record(self, db: AsyncSession, user_id: int, record_id: int) -> Record:
        result = await db.execute(select(Record).where(Record.id == record_id, Record.user_id == user_id))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFound("Record not found")
        return record

    async def delete_record(self, db: AsyncSession, user_id: int, record_id: int) -> None:
        record = await self.get_record(db, user_id, record_id)
        account = await db.get(Account, record.account_id)
        if account is not None:
            apply_to_account(account, -float(record.amount))
        await db.delete(record)
        await db.commit()
