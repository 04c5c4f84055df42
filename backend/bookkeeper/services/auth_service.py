"""User registration and login."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.config import settings
from bookkeeper.core.errors import BadRequest, Conflict, Forbidden
from bookkeeper.core.security import create_access_token, hash_password, preview_token, verify_password
from bookkeeper.models.schemas import LoginRequest, RegisterRequest
from bookkeeper.models.tables import User
from bookkeeper.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

GENERIC_LOGIN_ERROR = "Incorrect email or password"


class AuthService:
    def __init__(self, ledger: Optional[LedgerService] = None) -> None:
        self.ledger = ledger or LedgerService()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> User:
        if await self.get_by_email(db, payload.email) is not None:
            raise Conflict("Email is already registered")
        user = User(
            name=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            # No verification mail is sent, accounts are usable right away
            is_verified=True,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise Conflict("Email is already registered") from exc
        await db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    async def login(self, db: AsyncSession, payload: LoginRequest) -> Tuple[str, User]:
        """Check credentials and issue a token.

        With ``UNIFIED_LOGIN_ERROR`` on, an unknown email and a wrong
        password produce the same message so the response does not reveal
        which addresses are registered.
        """
        user = await self.get_by_email(db, payload.email)
        if user is None:
            raise BadRequest(GENERIC_LOGIN_ERROR if settings.UNIFIED_LOGIN_ERROR else "Account does not exist")
        if not user.is_verified:
            raise Forbidden("Please verify your email before logging in")
        if not verify_password(payload.password, user.password_hash):
            raise BadRequest(GENERIC_LOGIN_ERROR if settings.UNIFIED_LOGIN_ERROR else "Incorrect password")

        await self.ledger.ensure_default_account(db, user.id)
        token = create_access_token(user.id)
        logger.info("Login success: id=%s email=%s token=%s", user.id, user.email, preview_token(token))
        return token, user
