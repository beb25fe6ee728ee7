"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time; point them at throwaway locations first
_TMP_DIR = tempfile.mkdtemp(prefix="hris-recovery-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_DIR, "logs"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from typing import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from faker import Faker

from main import app
from db.session import get_db_session
from db.base import initialize_database
from schemas.user_schema import UserCreate, RecoveryIdentity
from services.user_directory import create_user

# Initialize Faker for test data generation
fake = Faker()

TEST_PASSWORD = "oldpassword123"


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False, future=True)
    await initialize_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; every request gets its own session on the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def delivery_mock():
    """Capture codes instead of sending email."""
    with patch("services.password_recovery_service.deliver_otp", new_callable=AsyncMock) as mock:
        mock.return_value = True
        yield mock


@pytest.fixture
def clock():
    """Controllable wall clock for the recovery workflow.

    ``clock.now`` starts at a fixed instant; tests move it forward with
    ``clock.advance(minutes=..., seconds=...)``.
    """
    class _Clock:
        def __init__(self):
            self.now = datetime(2026, 1, 5, 9, 0, 0)

        def __call__(self):
            return self.now

        def advance(self, **kwargs):
            self.now = self.now + timedelta(**kwargs)

    c = _Clock()
    with patch("services.password_recovery_service.utcnow", side_effect=c):
        yield c


@pytest.fixture
async def user(db_session) -> RecoveryIdentity:
    return await create_user(UserCreate(
        username=fake.unique.user_name()[:40] + "x",
        email=fake.unique.email(),
        full_name=fake.name(),
        password=TEST_PASSWORD,
    ), db_session)


@pytest.fixture
async def user_without_email(db_session) -> RecoveryIdentity:
    return await create_user(UserCreate(
        username=fake.unique.user_name()[:40] + "n",
        full_name=fake.name(),
        password=TEST_PASSWORD,
    ), db_session)


def sent_code(delivery_mock, call_index: int = -1) -> str:
    """Plaintext code handed to the delivery adapter on a given call."""
    args = delivery_mock.call_args_list[call_index].args
    return args[1]
