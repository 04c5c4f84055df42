"""Common dependencies for FastAPI routes.

Database access and the bearer-token check live here so routers only
declare ``Depends(...)``.  Token verification itself is in
``bookkeeper.core.security``; this module adapts it to a request.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.core.database import get_db
from bookkeeper.core.observability import sentry_set_user
from bookkeeper.core.security import verify_authorization_header


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncGenerator[AsyncSession, None]:
    """Alias for `get_db` to be imported in routers."""
    yield db


async def get_current_user_id(request: Request) -> int:
    """Verify the bearer token and attach the caller's id to ``request.state``.

    Raises ``Unauthorized`` or ``InvalidToken``; both render as 401.
    """
    user_id = verify_authorization_header(request.headers.get("Authorization"))
    request.state.user_id = user_id
    sentry_set_user(user_id)
    return user_id
