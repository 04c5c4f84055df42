"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers under
``settings.API_PREFIX`` and sets up startup and shutdown events. When run
with uvicorn it initialises the database and loads configuration from
``bookkeeper.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from bookkeeper.api.error_handlers import (
    bookkeeper_error_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from bookkeeper.api.routes.accounts import router as accounts_router
from bookkeeper.api.routes.auth import router as auth_router
from bookkeeper.api.routes.dev import router as dev_router
from bookkeeper.api.routes.groups import router as groups_router
from bookkeeper.api.routes.notifications import router as notifications_router
from bookkeeper.api.routes.records import router as records_router
from bookkeeper.api.routes.splits import router as splits_router
from bookkeeper.core.config import settings
from bookkeeper.core.database import get_db_debug_info, init_db
from bookkeeper.core.errors import BookkeeperError
from bookkeeper.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_log_middleware(request: Request, call_next):  # type: ignore
    logger.info("[REQ] %s %s", request.method, request.url.path)
    return await call_next(request)


# Development allows any origin; otherwise only the configured list
allow_origins = ["*"] if settings.is_development else list(settings.BACKEND_CORS_ORIGINS or [])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials="*" not in allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
app.add_exception_handler(BookkeeperError, bookkeeper_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include routers
for router in (
    auth_router,
    accounts_router,
    records_router,
    groups_router,
    splits_router,
    notifications_router,
    dev_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API"}


@app.api_route(f"{settings.API_PREFIX}/health", methods=["GET", "HEAD"])
async def health_check():
    """Health check endpoint (supports GET & HEAD)."""
    return {"status": "healthy"}


@app.get("/debug/db")
async def db_debug():
    """Return non-sensitive DB diagnostics (for development)."""
    return get_db_debug_info()
