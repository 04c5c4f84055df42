from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from bookkeeper.core.errors import BadRequest, Conflict, NotFound
from bookkeeper.models.enums import AccountKind
from bookkeeper.models.schemas import AccountUpdate, BankAccountCreate, CashAccountCreate
from bookkeeper.models.tables import Account, User
from bookkeeper.services.ledger_service import DEFAULT_CASH_ACCOUNT_NAME, LedgerService


async def _user(session, email="ledger@example.com") -> User:
    user = User(name="L", email=email, password_hash="x", is_verified=True)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def _count(session, *criteria) -> int:
    return int((await session.execute(select(func.count(Account.id)).where(*criteria))).scalar())


@pytest.mark.asyncio
async def test_bank_upsert_is_keyed_and_overwrites_balance(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        for balance in (100, 250, 75):
            acc = await svc.upsert_bank_account(
                session, user.id, bank_code="808", account_number="001", name="Main", balance=balance,
                bank_name="Bank", branch_name="HQ",
            )
        assert await _count(session, Account.user_id == user.id) == 1
        assert acc.balance == 75
        assert acc.kind == AccountKind.BANK

        # Same number at another bank is a different account
        await svc.upsert_bank_account(session, user.id, bank_code="812", account_number="001", name="Other", balance=1)
        assert await _count(session, Account.user_id == user.id) == 2


@pytest.mark.asyncio
async def test_credit_card_upsert_starts_at_zero_balance_and_updates_in_place(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        card = await svc.upsert_credit_card(
            session, user.id, card_issuer="Issuer", card_last4="1234", name="Card",
            credit_limit=50000, current_credit_used=1200, card_network="VISA", billing_day=10, payment_due_day=23,
        )
        assert card.balance == 0
        again = await svc.upsert_credit_card(
            session, user.id, card_issuer="Issuer", card_last4="1234", name="Renamed",
            credit_limit=60000, current_credit_used=0,
        )
        assert again.id == card.id
        assert again.name == "Renamed"
        assert again.credit_limit == 60000
        assert again.available_credit == 60000
        assert await _count(session, Account.user_id == user.id) == 1


@pytest.mark.asyncio
async def test_cash_upsert_keyed_on_name(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        for _ in range(3):
            await svc.upsert_cash_account(session, user.id, name="Wallet", balance=2000)
        await svc.upsert_cash_account(session, user.id, name="Piggy bank", balance=5)
        assert await _count(session, Account.user_id == user.id, Account.kind == AccountKind.CASH) == 2


@pytest.mark.asyncio
async def test_duplicate_cash_name_is_rejected_by_the_database(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        uid = user.id
        session.add(Account(user_id=uid, name="Wallet", kind=AccountKind.CASH, balance=0))
        await session.commit()
        session.add(Account(user_id=uid, name="Wallet", kind=AccountKind.CASH, balance=0))
        with pytest.raises(IntegrityError):
            await session.commit()
        await session.rollback()

        # Bank accounts may share the name
        session.add(Account(user_id=uid, name="Wallet", kind=AccountKind.BANK, balance=0))
        await session.commit()


@pytest.mark.asyncio
async def test_create_account_conflict_maps_to_409(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        payload = BankAccountCreate(kind="bank", name="A", bank_code="808", account_number="1")
        await svc.create_account(session, user.id, payload)
        with pytest.raises(Conflict) as exc:
            await svc.create_account(session, user.id, payload)
        assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_default_cash_account_created_once(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        first = await svc.list_accounts(session, user.id)
        second = await svc.list_accounts(session, user.id)
        assert [a.name for a in first] == [DEFAULT_CASH_ACCOUNT_NAME]
        assert [a.id for a in second] == [first[0].id]


@pytest.mark.asyncio
async def test_kind_switch_clears_other_kind_fields(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        bank = await svc.create_account(
            session, user.id,
            BankAccountCreate(kind="bank", name="B", balance=300, bank_code="808", account_number="9"),
        )
        card = await svc.update_account(
            session, user.id, bank.id,
            AccountUpdate(kind=AccountKind.CREDIT_CARD, credit_limit=1000, card_issuer="X", card_last4="4321"),
        )
        assert card.kind == AccountKind.CREDIT_CARD
        assert card.balance == 0
        assert card.bank_code is None and card.account_number is None
        assert card.credit_limit == 1000

        cash = await svc.update_account(session, user.id, card.id, AccountUpdate(kind=AccountKind.CASH, balance=50))
        assert cash.balance == 50
        assert cash.credit_limit == 0
        assert cash.card_issuer is None and cash.card_last4 is None


@pytest.mark.asyncio
async def test_accounts_of_other_users_are_not_found(session_factory):
    async with session_factory() as session:
        owner = await _user(session, "owner@example.com")
        other = await _user(session, "other@example.com")
        svc = LedgerService()
        acc = await svc.create_account(session, owner.id, CashAccountCreate(kind="cash", name="Mine"))
        with pytest.raises(NotFound):
            await svc.get_owned_account(session, other.id, acc.id)


@pytest.mark.asyncio
async def test_repay_moves_money_from_source_to_card(session_factory):
    async with session_factory() as session:
        user = await _user(session)
        svc = LedgerService()
        bank = await svc.upsert_bank_account(
            session, user.id, bank_code="808", account_number="1", name="Bank", balance=5000
        )
        card = await svc.upsert_credit_card(
            session, user.id, card_issuer="Issuer", card_last4="1111", name="Card",
            credit_limit=10000, current_credit_used=1200,
        )
        card, source, record = await svc.repay_credit_card(session, user.id, card.id, from_account_id=bank.id, amount=2000)
        # capped at what is owed
        assert record.amount == 1200
        assert record.category == "信用卡還款"
        assert source.balance == 3800
        assert card.current_credit_used == 0

        card, source, record = await svc.repay_credit_card(session, user.id, card.id, from_account_id=bank.id, amount=100)
        assert source is None and record is None

        with pytest.raises(BadRequest):
            await svc.repay_credit_card(session, user.id, card.id, from_account_id=card.id, amount=1)
