"""
Custom exception handlers for FastAPI.
Every error body carries a ``message`` key so clients can show it as-is.
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from bookkeeper.core.errors import BookkeeperError
from bookkeeper.core.observability import sentry_capture

logger = logging.getLogger(__name__)


def bookkeeper_error_handler(request: Request, exc: BookkeeperError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "message": "Validation error",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    sentry_capture(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Internal server error",
            "details": str(exc),
        },
    )
