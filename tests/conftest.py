import os
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Test settings: in-memory MongoDB, cheap bcrypt
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "rewards_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from app.core.clock import Clock  # noqa: E402


class FrozenClock(Clock):
    """Clock whose time only moves when a test moves it."""

    def __init__(self, now: datetime, tz_name: str = "UTC"):
        super().__init__(tz_name)
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


@pytest_asyncio.fixture(autouse=True)
async def db():
    from mongomock_motor import AsyncMongoMockClient

    from app.db.init import init_db
    client = AsyncMongoMockClient()
    await init_db(client)
    yield client


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 10, 9, 30))


@pytest_asyncio.fixture
async def make_account(clock):
    """Factory: register an account through the service and return it."""
    from app.services import users as user_service
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "phone": f"+88017000000{n:02d}",
            "password": "secret-pass",
        }
        fields.update(overrides)
        return await user_service.register(
            fields.pop("name"),
            fields.pop("email"),
            fields.pop("phone"),
            fields.pop("password"),
            clock,
            **fields,
        )

    return _make


@pytest_asyncio.fixture
async def client(clock) -> AsyncGenerator[AsyncClient, None]:
    from app.deps import get_clock
    from app.main import app
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def clock_at():
    """Factory for extra clocks: clock_at(datetime, tz_name="UTC")."""
    return FrozenClock
