from __future__ import annotations

import pytest
from sqlalchemy import func, select

from bookkeeper.core.security import verify_password
from bookkeeper.models.enums import AccountKind
from bookkeeper.models.tables import Account, User
from bookkeeper.scripts.seed import DEMO_EMAIL, DEMO_PASSWORD, seed


async def _kind_counts(session, user_id) -> dict:
    result = await session.execute(
        select(Account.kind, func.count(Account.id)).where(Account.user_id == user_id).group_by(Account.kind)
    )
    return {AccountKind(kind): count for kind, count in result.all()}


@pytest.mark.asyncio
async def test_seed_is_idempotent(session_factory):
    async with session_factory() as session:
        first = await seed(session)
        second = await seed(session)
        assert first.id == second.id

        users = (await session.execute(select(func.count(User.id)))).scalar()
        assert users == 1
        assert await _kind_counts(session, first.id) == {
            AccountKind.BANK: 2,
            AccountKind.CASH: 1,
            AccountKind.CREDIT_CARD: 2,
        }


@pytest.mark.asyncio
async def test_seed_values(session_factory):
    async with session_factory() as session:
        user = await seed(session)
        assert user.email == DEMO_EMAIL
        assert user.is_verified is True
        assert verify_password(DEMO_PASSWORD, user.password_hash)

        accounts = {a.name: a for a in (await session.execute(select(Account))).scalars()}
        assert accounts["玉山活存"].balance == 15000
        assert accounts["台新活存"].bank_code == "812"
        assert accounts["錢包現金"].balance == 2000
        gogo = accounts["台新@GOGO卡"]
        assert (gogo.credit_limit, gogo.current_credit_used, gogo.card_network) == (50000, 1200, "VISA")
        assert (gogo.billing_day, gogo.payment_due_day) == (10, 23)
        assert accounts["玉山Pi卡"].balance == 0


@pytest.mark.asyncio
async def test_seed_resets_drifted_balances(session_factory):
    async with session_factory() as session:
        user = await seed(session)
        cash = (await session.execute(select(Account).where(Account.name == "錢包現金"))).scalar_one()
        cash.balance = 1
        await session.commit()

        await seed(session)
        await session.refresh(cash)
        assert cash.balance == 2000
        assert await _kind_counts(session, user.id) == {
            AccountKind.BANK: 2,
            AccountKind.CASH: 1,
            AccountKind.CREDIT_CARD: 2,
        }
