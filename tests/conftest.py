"""Shared test fixtures."""

import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Throwaway SQLite file per test run; must be set before the app is imported
os.environ["DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{tempfile.gettempdir()}/pixel_relay_test_{uuid.uuid4().hex[:8]}.db"
)
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("CREDENTIALS_SOURCE", "static")

import pixel_relay.models  # noqa: E402, F401
from pixel_relay.core.dependencies import get_pipeline  # noqa: E402
from pixel_relay.db.base import Base  # noqa: E402
from pixel_relay.db.session import async_session_factory  # noqa: E402
from pixel_relay.db.session import engine as app_engine  # noqa: E402
from pixel_relay.main import app  # noqa: E402
from pixel_relay.services.ingestion import IngestionPipeline, build_pipeline  # noqa: E402
from tests.helpers import FakeUpstream, make_settings  # noqa: E402


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema for every test, on the app's own engine."""
    async with app_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_session_factory
    await app_engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def pipeline_factory(session_factory) -> Callable[..., IngestionPipeline]:
    """Build a pipeline on the test database whose HTTP calls hit ``upstream``."""

    def _factory(upstream: FakeUpstream, **overrides) -> IngestionPipeline:
        return build_pipeline(
            make_settings(**overrides), session_factory, transport=upstream.transport
        )

    return _factory


@pytest.fixture
async def client(session_factory, upstream, pipeline_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client; the ingestion pipeline talks to ``upstream`` instead of the network."""
    pipeline = pipeline_factory(upstream)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_pipeline, None)
