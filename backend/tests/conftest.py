from __future__ import annotations

import os
import sys
from pathlib import Path

# Add backend folder to sys.path so `import bookkeeper...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Settings are read at import time; pin them before the package loads
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("SENTRY_DSN", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from bookkeeper.api.main import app
from bookkeeper.core.database import Base, build_engine, get_db
from bookkeeper.core.security import create_access_token
from bookkeeper.models import tables  # noqa: F401


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def session_factory(db_path):
    # NullPool: connections never outlive the event loop that opened them
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def client(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    # No context manager: the lifespan (init_db on the real engine) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def bearer():
    def _bearer(user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _bearer


@pytest.fixture
def signup(client):
    """Register and log in a user through the API; returns ``(user_id, headers)``."""

    def _signup(email: str, name: str = "Tester", password: str = "pw123456"):
        res = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.text
        res = client.post("/api/auth/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        body = res.json()
        return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}

    return _signup
