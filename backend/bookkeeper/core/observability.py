"""Sentry wiring for the API and the seed script.

Everything here is a no-op unless ``sentry_sdk`` is importable and
``SENTRY_DSN`` is set, so callers never need to check first.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from bookkeeper.core.config import settings
from bookkeeper.core.errors import BookkeeperError

try:  # Optional import
    import sentry_sdk  # type: ignore
    from sentry_sdk.integrations.fastapi import FastApiIntegration  # type: ignore
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration  # type: ignore
    _SENTRY_AVAILABLE = True
except Exception:  # pragma: no cover
    _SENTRY_AVAILABLE = False

_SCRUBBED_HEADERS = {"authorization", "cookie", "set-cookie"}
_initialised = False


def sentry_enabled() -> bool:
    return bool(_SENTRY_AVAILABLE and settings.SENTRY_DSN)


def _before_send(event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None):
    """Strip credentials from an outgoing event.

    Bearer tokens travel in headers and auth bodies carry passwords, so both
    the credential headers and the whole request body are dropped.  Expected
    application errors (4xx) are not reported at all.
    """
    exc_info = (hint or {}).get("exc_info")
    if exc_info and isinstance(exc_info[1], BookkeeperError):
        return None
    request = event.get("request") or {}
    headers = request.get("headers") or {}
    for name in [h for h in headers if h.lower() in _SCRUBBED_HEADERS]:
        del headers[name]
    request.pop("data", None)
    event["request"] = request
    return event


def init_sentry(service: str) -> bool:
    """Initialise the SDK once per process, tagging events with ``service``."""
    global _initialised
    if not sentry_enabled():
        return False
    if _initialised:
        return True
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0),
        environment=settings.ENVIRONMENT,
        release=settings.SENTRY_RELEASE,
        send_default_pii=False,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", service)
    _initialised = True
    return True


def sentry_set_user(user_id: int) -> None:
    """Attach the authenticated user id (never the email) to the current scope."""
    if sentry_enabled():
        sentry_sdk.set_user({"id": str(user_id)})


def sentry_capture(exc: BaseException) -> None:
    if sentry_enabled():
        sentry_sdk.capture_exception(exc)


def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
    if sentry_enabled():
        sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


__all__ = ["init_sentry", "sentry_capture", "sentry_breadcrumb", "sentry_enabled", "sentry_set_user"]
