"""Load the demo user and their accounts.

Run with ``python -m bookkeeper.scripts.seed`` (or ``bookkeeper-seed``).
Safe to run repeatedly: every row is upserted on its natural key, so a
second run updates values in place and the row counts stay the same.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.database import AsyncSessionLocal, init_db
from bookkeeper.core.security import hash_password
from bookkeeper.models.tables import User
from bookkeeper.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@bookkeeper.test"
DEMO_NAME = "Demo User"
DEMO_PASSWORD = "demo1234"

BANK_ACCOUNTS = [
    dict(bank_code="808", account_number="001234567890", name="玉山活存", balance=15000,
         bank_name="玉山銀行", branch_name="台北分行"),
    dict(bank_code="812", account_number="009876543210", name="台新活存", balance=32000,
         bank_name="台新銀行", branch_name="內湖分行"),
]

CASH_ACCOUNTS = [
    dict(name="錢包現金", balance=2000),
]

CREDIT_CARDS = [
    dict(card_issuer="台新銀行", card_last4="1234", name="台新@GOGO卡", credit_limit=50000,
         current_credit_used=1200, card_network="VISA", billing_day=10, payment_due_day=23),
    dict(card_issuer="玉山銀行", card_last4="5678", name="玉山Pi卡", credit_limit=80000,
         current_credit_used=0, card_network="Master", billing_day=5, payment_due_day=22),
]


async def upsert_demo_user(db: AsyncSession) -> User:
    result = await db.execute(select(User).where(User.email == DEMO_EMAIL))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(name=DEMO_NAME, email=DEMO_EMAIL, password_hash=hash_password(DEMO_PASSWORD))
        db.add(user)
    user.is_verified = True
    await db.commit()
    await db.refresh(user)
    return user


async def seed(db: AsyncSession) -> User:
    user = await upsert_demo_user(db)
    ledger = LedgerService()
    for bank in BANK_ACCOUNTS:
        await ledger.upsert_bank_account(db, user.id, **bank)
    for cash in CASH_ACCOUNTS:
        await ledger.upsert_cash_account(db, user.id, **cash)
    for card in CREDIT_CARDS:
        await ledger.upsert_credit_card(db, user.id, **card)
    logger.info(
        "Seeded user %s with %d bank, %d cash and %d card accounts",
        user.id,
        len(BANK_ACCOUNTS),
        len(CASH_ACCOUNTS),
        len(CREDIT_CARDS),
    )
    return user


async def main() -> None:
    logger.info("Seeding start...")
    await init_db()
    async with AsyncSessionLocal() as db:
        await seed(db)
    logger.info("Seeding done.")


def run() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())


if __name__ == "__main__":
    run()
