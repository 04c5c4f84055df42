"""Account ledger store.

Accounts are keyed per kind by a natural key (see ``bookkeeper.models.tables``).
Three upsert strategies mirror those keys:

* bank accounts upsert on ``(user_id, bank_code, account_number)``
* credit cards upsert on ``(user_id, card_issuer, card_last4)``
* cash accounts upsert on ``(user_id, kind='cash', name)``

Every upsert overwrites the balance it is given rather than adding to it;
they exist to (re)load fixture data, not to post transactions.  Each one
commits on its own.  Under concurrent callers the find-then-insert path can
collide; the unique indexes turn that into an ``IntegrityError`` instead of
a duplicate row.

The rest of the module backs the accounts API: listing with a default cash
account, create/update with kind-specific field cleanup, guarded deletion
and credit-card repayment.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.errors import BadRequest, Conflict, NotFound
from bookkeeper.models.enums import AccountKind, PaymentMethod
from bookkeeper.models.schemas import (
    AccountUpdate,
    BankAccountCreate,
    CashAccountCreate,
    CreditCardAccountCreate,
)
from bookkeeper.models.tables import Account, Record
from bookkeeper.utils.helpers import to_naive_utc

logger = logging.getLogger(__name__)

DEFAULT_CASH_ACCOUNT_NAME = "我的現金"
REPAYMENT_CATEGORY = "信用卡還款"

_BANK_FIELDS = ("bank_name", "bank_code", "branch_name", "account_number")
_CARD_FIELDS = ("card_issuer", "card_network", "card_last4", "billing_day", "payment_due_day")


def _conflict_for(kind: AccountKind) -> Conflict:
    if kind == AccountKind.BANK:
        return Conflict("Bank code + account number already used by another of your accounts")
    if kind == AccountKind.CREDIT_CARD:
        return Conflict("Card issuer + last four digits already used by another of your accounts")
    return Conflict("A cash account with this name already exists")


class LedgerService:
    """Reads and writes ``Account`` rows for a single user at a time."""

    # --- Upserts -------------------------------------------------------

    async def _find_one(self, db: AsyncSession, *criteria) -> Optional[Account]:
        result = await db.execute(select(Account).where(*criteria))
        return result.scalar_one_or_none()

    async def _save(self, db: AsyncSession, account: Account) -> Account:
        db.add(account)
        await db.commit()
        await db.refresh(account)
        return account

    async def upsert_bank_account(
        self,
        db: AsyncSession,
        user_id: int,
        *,
        bank_code: str,
        account_number: str,
        name: str,
        balance: float,
        bank_name: Optional[str] = None,
        branch_name: Optional[str] = None,
    ) -> Account:
        account = await self._find_one(
            db,
            Account.user_id == user_id,
            Account.bank_code == bank_code,
            Account.account_number == account_number,
        )
        if account is None:
            account = Account(
                user_id=user_id,
                kind=AccountKind.BANK,
                bank_code=bank_code,
                account_number=account_number,
            )
        account.name = name
        account.kind = AccountKind.BANK
        account.balance = balance
        account.bank_name = bank_name
        account.branch_name = branch_name
        return await self._save(db, account)

    async def upsert_credit_card(
        self,
        db: AsyncSession,
        user_id: int,
        *,
        card_issuer: str,
        card_last4: str,
        name: str,
        credit_limit: float,
        current_credit_used: float,
        card_network: Optional[str] = None,
        billing_day: Optional[int] = None,
        payment_due_day: Optional[int] = None,
    ) -> Account:
        account = await self._find_one(
            db,
            Account.user_id == user_id,
            Account.card_issuer == card_issuer,
            Account.card_last4 == card_last4,
        )
        if account is None:
            account = Account(
                user_id=user_id,
                kind=AccountKind.CREDIT_CARD,
                card_issuer=card_issuer,
                card_last4=card_last4,
                balance=0,
            )
        account.name = name
        account.kind = AccountKind.CREDIT_CARD
        account.credit_limit = credit_limit
        account.current_credit_used = current_credit_used
        account.card_network = card_network
        account.billing_day = billing_day
        account.payment_due_day = payment_due_day
        return await self._save(db, account)

    async def upsert_cash_account(
        self, db: AsyncSession, user_id: int, *, name: str, balance: float
    ) -> Account:
        account = await self._find_one(
            db,
            Account.user_id == user_id,
            Account.kind == AccountKind.CASH,
            Account.name == name,
        )
        if account is None:
            account = Account(user_id=user_id, kind=AccountKind.CASH, name=name)
        account.balance = balance
        return await self._save(db, account)

    # --- Queries -------------------------------------------------------

    async def ensure_default_account(self, db: AsyncSession, user_id: int) -> None:
        """Give a user with no accounts at all an empty cash account."""
        result = await db.execute(select(func.count(Account.id)).where(Account.user_id == user_id))
        if int(result.scalar() or 0) > 0:
            return
        db.add(Account(user_id=user_id, name=DEFAULT_CASH_ACCOUNT_NAME, kind=AccountKind.CASH, balance=0))
        await db.commit()
        logger.info("Created default cash account for user %s", user_id)

    async def list_accounts(
        self, db: AsyncSession, user_id: int, kind: Optional[AccountKind] = None
    ) -> Sequence[Account]:
        await self.ensure_default_account(db, user_id)
        q = select(Account).where(Account.user_id == user_id)
        if kind is not None:
            q = q.where(Account.kind == kind)
        result = await db.execute(q.order_by(Account.id.asc()))
        return result.scalars().all()

    async def get_owned_account(self, db: AsyncSession, user_id: int, account_id: int) -> Account:
        account = await self._find_one(db, Account.id == account_id, Account.user_id == user_id)
        if account is None:
            raise NotFound("Account not found")
        return account

    # --- Mutations -----------------------------------------------------

    async def create_account(
        self,
        db: AsyncSession,
        user_id: int,
        payload: CashAccountCreate | BankAccountCreate | CreditCardAccountCreate,
    ) -> Account:
        kind = AccountKind(payload.kind)
        account = Account(
            user_id=user_id,
            name=payload.name,
            kind=kind,
            allowance_day=payload.allowance_day,
            balance=0,
            credit_limit=0,
            current_credit_used=0,
        )
        if isinstance(payload, CreditCardAccountCreate):
            account.credit_limit = payload.credit_limit
            account.current_credit_used = payload.current_credit_used
            for field in _CARD_FIELDS:
                setattr(account, field, getattr(payload, field))
        else:
            account.balance = payload.balance
        if isinstance(payload, BankAccountCreate):
            for field in _BANK_FIELDS:
                setattr(account, field, getattr(payload, field))
        db.add(account)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise _conflict_for(kind) from exc
        await db.refresh(account)
        logger.info("Created %s account %s for user %s", kind.value, account.id, user_id)
        return account

    async def update_account(
        self, db: AsyncSession, user_id: int, account_id: int, payload: AccountUpdate
    ) -> Account:
        """Apply a partial update.

        Switching ``kind`` clears every column that belongs to another kind:
        cash keeps only a balance, banks a balance plus bank details, cards
        a credit line plus card details and a zero balance.
        """
        account = await self.get_owned_account(db, user_id, account_id)
        changes = payload.model_dump(exclude_unset=True)
        next_kind = AccountKind(changes.pop("kind", None) or account.kind)

        if "name" in changes and changes["name"]:
            account.name = changes["name"]
        if "allowance_day" in changes:
            account.allowance_day = changes["allowance_day"]

        if next_kind == AccountKind.CREDIT_CARD:
            account.balance = 0
            for field in ("credit_limit", "current_credit_used", *_CARD_FIELDS):
                if field in changes:
                    setattr(account, field, changes[field])
            for field in _BANK_FIELDS:
                setattr(account, field, None)
        else:
            if changes.get("balance") is not None:
                account.balance = changes["balance"]
            account.credit_limit = 0
            account.current_credit_used = 0
            for field in _CARD_FIELDS:
                setattr(account, field, None)
            for field in _BANK_FIELDS:
                if next_kind == AccountKind.CASH:
                    setattr(account, field, None)
                elif field in changes:
                    setattr(account, field, changes[field])
        account.kind = next_kind

        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise _conflict_for(next_kind) from exc
        await db.refresh(account)
        return account

    async def delete_account(self, db: AsyncSession, user_id: int, account_id: int) -> None:
        account = await self.get_owned_account(db, user_id, account_id)
        result = await db.execute(select(func.count(Record.id)).where(Record.account_id == account.id))
        if int(result.scalar() or 0) > 0:
            raise BadRequest("Accounts with records cannot be deleted")
        await db.delete(account)
        await db.commit()

    async def repay_credit_card(
        self,
        db: AsyncSession,
        user_id: int,
        card_id: int,
        *,
        from_account_id: int,
        amount: Optional[float] = None,
        when: Optional[dt.datetime] = None,
        note: Optional[str] = None,
    ) -> Tuple[Account, Optional[Account], Optional[Record]]:
        """Move money from a cash/bank account onto a card's used credit.

        ``amount`` defaults to everything currently used and is capped at
        it.  The expense record, the source balance and the card's used
        credit are written in one commit.  Returns ``(card, source, record)``;
        ``source`` and ``record`` are ``None`` when nothing was owed.
        """
        card = await self._find_one(db, Account.id == card_id, Account.user_id == user_id)
        if card is None or card.kind != AccountKind.CREDIT_CARD:
            raise NotFound("Credit card account not found")
        source = await self._find_one(db, Account.id == from_account_id, Account.user_id == user_id)
        if source is None:
            raise NotFound("Source account not found")
        if source.kind == AccountKind.CREDIT_CARD:
            raise BadRequest("Source account cannot be a credit card")

        used = float(card.current_credit_used or 0)
        amt = used if amount is None else float(amount)
        if amt <= 0:
            raise BadRequest("Repayment amount must be greater than 0")
        amt = min(amt, used)
        if amt <= 0:
            return card, None, None

        label = "".join(
            part
            for part in (
                f"「{card.card_issuer}」" if card.card_issuer else "",
                f"({card.card_last4})" if card.card_last4 else "",
            )
        )
        record = Record(
            user_id=user_id,
            account_id=source.id,
            amount=amt,
            quantity=1,
            category=REPAYMENT_CATEGORY,
            note=note if note is not None else f"還款到{label}",
            payment_method=PaymentMethod.CASH if source.kind == AccountKind.CASH else PaymentMethod.BANK,
        )
        if when is not None:
            record.created_at = to_naive_utc(when)
        db.add(record)
        source.balance = float(source.balance or 0) - amt
        card.current_credit_used = max(used - amt, 0)
        await db.commit()
        await db.refresh(record)
        logger.info("User %s repaid %.2f on card %s from account %s", user_id, amt, card.id, source.id)
        return card, source, record


__all__ = ["LedgerService", "DEFAULT_CASH_ACCOUNT_NAME", "REPAYMENT_CATEGORY"]
