"""
Shared fixtures.

Every test gets its own SQLite file under ``tmp_path``. The schema is created
with a plain sync engine; async code talks to the same file through aiosqlite
with ``NullPool`` so no connection outlives the event loop that opened it.

Run with:
    python -m pytest tests -v
"""
import asyncio
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

# Settings are read at import time, so the environment must be in place first
os.environ["API_SECRET_KEY"] = "test-secret-key-0123456789-abcdefghijklmnop"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import Base, get_db
from app.models.bill import Bill  # noqa: F401
from app.models.budget import Budget, BudgetAlert  # noqa: F401
from app.models.category import Category
from app.models.user import User

TEST_PASSWORD = "Sup3r-Secret-Pass!"


@pytest.fixture
def session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    path = tmp_path / "walletwise.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def seed(session_factory) -> SimpleNamespace:
    """Two users; alice owns Food/Transport (expense) and Salary (income), bob owns Food."""

    async def _seed() -> SimpleNamespace:
        async with session_factory() as db:
            alice = User(username="alice", email="alice@example.com", hashed_password="x")
            bob = User(username="bob", email="bob@example.com", hashed_password="x")
            db.add_all([alice, bob])
            await db.flush()

            food = Category(user_id=alice.id, name="Food", type="expense")
            transport = Category(user_id=alice.id, name="Transport", type="expense")
            salary = Category(user_id=alice.id, name="Salary", type="income")
            bob_food = Category(user_id=bob.id, name="Food", type="expense")
            db.add_all([food, transport, salary, bob_food])
            await db.commit()

            return SimpleNamespace(
                alice=alice.id,
                bob=bob.id,
                food=food.id,
                transport=transport.id,
                salary=salary.id,
                bob_food=bob_food.id,
            )

    return asyncio.run(_seed())


# ─── HTTP ──────────────────────────────────────────────────────────────────────

@pytest.fixture
def redis_calls(monkeypatch) -> SimpleNamespace:
    """Replace the Redis-backed helpers used by the auth router with mocks."""
    from app.routers import auth as auth_router

    mocks = SimpleNamespace(
        is_locked_out=AsyncMock(return_value=False),
        record_login_failure=AsyncMock(return_value=1),
        clear_login_failures=AsyncMock(return_value=None),
        blacklist_token=AsyncMock(return_value=None),
        is_blacklisted=AsyncMock(return_value=False),
    )
    for name, mock in vars(mocks).items():
        monkeypatch.setattr(auth_router, name, mock)
    return mocks


@pytest.fixture
def client(session_factory, redis_calls):
    from app.main import app

    async def override_get_db():
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register_and_login(client: TestClient, username: str = "alice") -> dict[str, str]:
    """Create an account through the API and return its Authorization header."""
    email = f"{username}@example.com"
    res = client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "password": TEST_PASSWORD},
    )
    assert res.status_code == 201, res.text
    res = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": TEST_PASSWORD},
    )
    assert res.status_code == 200, res.text
    # Drop the cookies so each request authenticates with its own header
    client.cookies.clear()
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    return register_and_login(client, "alice")


@pytest.fixture
def login_as(client):
    """Factory fixture: ``login_as("bob")`` registers bob and returns the headers for that account."""
    return lambda username: register_and_login(client, username)
