"""API test fixtures — async DB with a seeded app + FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database with one app and one API key
    - get_db dependency overridden to use the test DB session
    - get_generation_client overridden with a scripted backend the test can reconfigure

Design Decisions:
    - SQLite in-memory with StaticPool: one shared connection, so seeded rows are visible
      to the route's session
    - Backend fixture is a plain object: tests mutate tokens/summary/error before calling
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from gateway.api.routes.chat_completions import get_generation_client
from gateway.core.domain_types import CompletionSummary
from gateway.db.base import Base
from gateway.infrastructure.database import get_db
from gateway.main import app
from gateway.models.app import App
from gateway.models.app_api_channel import AppApiChannel

from tests.services.mock_generation import ScriptedGenerationClient

API_KEY = "sk-gateway-test"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def seed_app(test_session_factory):
    """One app with a system prompt and knowledge bases, reachable via API_KEY."""
    async with test_session_factory() as db:
        db.add(App(
            id="app-1", name="Support bot", model_id="claude-test",
            prompt="Be brief.", knowledge_ids=["kb-1", "kb-2"],
        ))
        db.add(AppApiChannel(app_id="app-1", api_key=API_KEY))
        await db.commit()


@pytest.fixture
def backend():
    return ScriptedGenerationClient(
        tokens=["He", "llo"],
        summary=CompletionSummary(total_tokens=5, input_tokens=2, output_tokens=3),
    )


@pytest.fixture
async def client(test_session_factory, seed_app, backend):
    """FastAPI test client with DB and generation backend overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_client] = lambda: backend

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
