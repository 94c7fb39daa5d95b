"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bountytriage.config import settings
from bountytriage.db.base import Base
# Import all models to register with Base.metadata
import bountytriage.db.models  # noqa: F401
from bountytriage.queue.store import InMemorySortedSetStore

from factories import WEBHOOK_SECRET, FakeOracle


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "allow_unsigned_webhooks", False)
    return WEBHOOK_SECRET


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def store():
    return InMemorySortedSetStore()


@pytest.fixture
def app(db_engine, session_factory, store, fake_oracle, webhook_secret):
    """Create a test application wired to in-memory SQLite and an in-memory queue."""
    from bountytriage.main import configure_pipeline, create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.redis = None
    configure_pipeline(_app, session_factory, store, fake_oracle)
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.triage_dispatcher.close()
