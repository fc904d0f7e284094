"""
Shared fixtures for the payment engine tests.

Provides:
- An in-memory SQLite database with the real models, rebuilt per test
- A file-backed SQLite database for tests that need concurrent sessions
- A session factory bound to it, as the handlers and services expect
- An in-process stand-in for the Redis store behind the dedup ledger
- Razorpay credentials patched onto the global settings
"""

from datetime import timedelta
from typing import Any, Dict, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.models import Base
from app.api.v1.payments.dedup import DedupLedger

KEY_ID = "rzp_test_key"
KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return async_sessionmaker(
        file_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ---------------------------------------------------------------------------
# Dedup store
# ---------------------------------------------------------------------------

class FakeStore:
    """Dict-backed store with the RedisCache interface"""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.expirations: Dict[str, Optional[int]] = {}
        self.fail_writes = False

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set(self, key: str, value: Any, expire: Optional[Union[int, timedelta]] = None) -> bool:
        if self.fail_writes:
            return False
        if isinstance(expire, timedelta):
            expire = int(expire.total_seconds())
        self.data[key] = value
        self.expirations[key] = expire
        return True

    async def delete(self, key: str) -> bool:
        self.expirations.pop(key, None)
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def disconnect(self):
        pass


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def ledger(store):
    return DedupLedger(store, provider="razorpay")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def razorpay_settings(monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", KEY_ID)
    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", KEY_SECRET)
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "STRICT_CONFIGURATION", False)
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    return settings
