"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application.  PostgreSQL URLs are normalised to the
``psycopg`` async driver and SQLite URLs to ``aiosqlite``.  When no
``DATABASE_URL`` is provided a local SQLite database is used in
development, as controlled by ``DB_DEV_FALLBACK_SQLITE``.
"""

from __future__ import annotations

import logging
import os
from typing import AsyncGenerator, Dict, Any, Optional

from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from bookkeeper.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./bookkeeper.db"

USING_SQLITE_FALLBACK: bool = False
LAST_DB_INIT_ERROR: Optional[str] = None


def normalize_database_url(url: str) -> str:
    """Return ``url`` rewritten to use an async driver.

    ``sqlite://`` becomes ``sqlite+aiosqlite://``; any PostgreSQL flavour
    (``postgres``, ``postgresql``, ``+psycopg2``, ``+asyncpg``) becomes
    ``postgresql+psycopg``.  Unparseable URLs are returned untouched so
    SQLAlchemy reports the error itself.
    """
    try:
        url_obj = make_url(url)
    except Exception:
        return url
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2", "postgresql+asyncpg"}:
        url_obj = url_obj.set(drivername="postgresql+psycopg")
    return url_obj.render_as_string(hide_password=False)


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine for ``url`` with the project defaults applied."""
    url = normalize_database_url(url)
    engine_kwargs: dict[str, Any] = dict(echo=False)
    if not url.startswith("sqlite"):
        engine_kwargs["pool_pre_ping"] = True
    engine_kwargs.update(kwargs)
    new_engine = create_async_engine(url, **engine_kwargs)
    enable_sqlite_foreign_keys(new_engine)
    return new_engine


db_url = settings.DATABASE_URL or os.getenv("DATABASE_URL")
if not db_url:
    if not settings.DB_DEV_FALLBACK_SQLITE:
        raise RuntimeError(
            "No database URL provided via DATABASE_URL; with "
            "DB_DEV_FALLBACK_SQLITE=false, a database URL is required."
        )
    db_url = SQLITE_FALLBACK_URL
    USING_SQLITE_FALLBACK = True

engine = build_engine(db_url)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI's ``Depends``.

    Services commit explicitly; whatever is still pending when a handler
    raises is rolled back before the session is closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables defined on the declarative ``Base``.

    Called during application startup and by the seed script.
    """
    global LAST_DB_INIT_ERROR
    try:
        async with engine.begin() as conn:
            # Import all models to ensure metadata is populated
            from bookkeeper.models import tables  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        LAST_DB_INIT_ERROR = str(e)
        logger.error("Database initialisation failed: %s", e)
        raise


def get_db_debug_info() -> Dict[str, Any]:
    """Return non-sensitive information about the current DB engine for debugging."""
    info: Dict[str, Any] = {
        "using_sqlite_fallback": USING_SQLITE_FALLBACK,
        "environment": (settings.ENVIRONMENT or "development"),
    }
    if LAST_DB_INIT_ERROR:
        info["last_db_init_error"] = LAST_DB_INIT_ERROR
    url_obj = engine.url
    info.update(
        {
            "drivername": url_obj.drivername,
            "username": url_obj.username,
            "host": url_obj.host,
            "port": url_obj.port,
            "database": url_obj.database,
            "url": url_obj.render_as_string(hide_password=True),
        }
    )
    return info
