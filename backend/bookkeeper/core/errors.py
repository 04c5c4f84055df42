"""Typed exception hierarchy for the bookkeeping API.

Every error raised deliberately by a service or dependency derives from
``BookkeeperError`` and carries a machine-readable ``code``, the HTTP
``status_code`` it maps to and a human-readable ``message``.  The API layer
renders them as ``{"message": ..., "code": ...}`` through a single exception
handler (see ``bookkeeper.api.error_handlers``).  Anything that is not a
``BookkeeperError`` is unexpected and ends up in the generic 500 handler.

    BookkeeperError
    |
    +-- Unauthorized          401  no credential presented
    +-- InvalidToken          401  bad signature, expired or malformed payload
    +-- BadRequest            400
    |   +-- InsufficientCredit
    +-- Forbidden             403
    +-- NotFound              404
    +-- Conflict              409  duplicate natural key, join code space exhausted
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BookkeeperError(Exception):
    """Base class for all expected application errors."""

    code: str = "ERROR"
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, **self.extra}


class Unauthorized(BookkeeperError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Not logged in"


class InvalidToken(BookkeeperError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Login expired or invalid token"


class BadRequest(BookkeeperError):
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Invalid request"


class InsufficientCredit(BadRequest):
    """Raised when a card expense exceeds the remaining credit line."""

    code = "INSUFFICIENT_CREDIT"
    default_message = "Insufficient credit"

    def __init__(self, available: float, required: float) -> None:
        super().__init__(
            availableCredit=available,
            requiredAmount=required,
            shortfall=required - available,
        )


class Forbidden(BookkeeperError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Not permitted"


class NotFound(BookkeeperError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class Conflict(BookkeeperError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Conflict"


__all__ = [
    "BookkeeperError",
    "Unauthorized",
    "InvalidToken",
    "BadRequest",
    "InsufficientCredit",
    "Forbidden",
    "NotFound",
    "Conflict",
]
