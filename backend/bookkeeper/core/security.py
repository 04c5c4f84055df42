"""Token and password utilities.

Access tokens are HS256 JWTs signed with ``JWT_SECRET`` and carrying the
caller's id in a ``userId`` claim plus an ``exp`` expiry.  Verification is
pure: no database lookup happens here, the id is trusted once the
signature and expiry check out.  Passwords are hashed with bcrypt.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Optional

import bcrypt
from jose import jwt, JWTError

from bookkeeper.core.config import settings
from bookkeeper.core.errors import InvalidToken, Unauthorized

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Sign a token identifying ``user_id``."""
    minutes = settings.JWT_EXPIRES_MINUTES if expires_minutes is None else expires_minutes
    expire = dt.datetime.now(dt.timezone.utc) + dt.timedelta(minutes=minutes)
    claims: Dict[str, Any] = {"userId": user_id, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def preview_token(token: str) -> str:
    """Shorten a token for log output."""
    if len(token) <= 16:
        return "***"
    return f"{token[:8]}...{token[-6:]}"


def _coerce_user_id(value: Any) -> Optional[int]:
    """Accept an int or a numeric string; anything else yields ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        uid = value
    elif isinstance(value, str):
        text = value.strip()
        # ASCII digits only; int() rejects superscripts that isdigit() accepts
        if not (text.isascii() and text.isdecimal()):
            return None
        uid = int(text)
    else:
        return None
    return uid if uid > 0 else None


def decode_access_token(token: str) -> int:
    """Verify ``token`` and return the user id it carries.

    Raises:
        InvalidToken: bad signature, expired, or no usable ``userId`` claim.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        if settings.AUTH_DEBUG:
            logger.warning("[auth] token rejected: %s", exc)
        raise InvalidToken() from exc
    uid = _coerce_user_id(payload.get("userId"))
    if uid is None:
        if settings.AUTH_DEBUG:
            logger.warning("[auth] token has no usable userId claim")
        raise InvalidToken()
    return uid


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization`` header value.

    Raises:
        Unauthorized: header missing, not a Bearer scheme, or empty token.
    """
    header = str(authorization or "")
    if not header.startswith(BEARER_PREFIX):
        raise Unauthorized()
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthorized()
    return token


def verify_authorization_header(authorization: Optional[str]) -> int:
    """Full bearer check: extract the token, verify it, return the user id."""
    return decode_access_token(extract_bearer_token(authorization))
