"""Pytest configuration and shared fixtures for API tests."""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test config before app imports so settings/engine use it
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'coral_test_{os.getpid()}.db')}",
)
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-key")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from app.config import get_settings
from app.db.base import Base
from app.db.session import async_session_maker, close_db, engine, init_db
from app.main import app

pytest_plugins = ["pytest_asyncio"]

USER = {"username": "testuser", "password": "testpass"}


async def _clear_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


@pytest_asyncio.fixture
async def ensure_db():
    """Create tables, clear them, and release pooled connections after the test."""
    await init_db()
    await _clear_all()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(ensure_db):
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(ensure_db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    return get_settings()


async def register(client: AsyncClient, username: str = USER["username"], password: str = USER["password"]):
    return await client.post("/public/register", json={"username": username, "password": password})


async def login(
    client: AsyncClient,
    username: str = USER["username"],
    password: str = USER["password"],
    device: str | None = None,
):
    headers = {"User-Agent": device} if device is not None else None
    return await client.post(
        "/public/login",
        json={"username": username, "password": password},
        headers=headers,
    )


@pytest_asyncio.fixture
async def tokens(client):
    """Register the default user and return its first (accessToken, refreshToken) pair."""
    await register(client)
    resp = await login(client)
    data = resp.json()
    return data["accessToken"], data["refreshToken"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
