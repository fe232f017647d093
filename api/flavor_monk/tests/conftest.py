"""Shared pytest fixtures for API tests and database isolation."""

from __future__ import annotations

import os
import tempfile
import uuid

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'flavor_monk_test_{os.getpid()}.db')}",
)
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from passlib.context import CryptContext  # noqa: E402
from sqlalchemy.engine import make_url  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from flavor_monk.api.deps import get_db, get_llm_router, get_vector_store  # noqa: E402
from flavor_monk.core import security  # noqa: E402
from flavor_monk.core.config import settings  # noqa: E402
from flavor_monk.db.base import Base  # noqa: E402
from flavor_monk.llm.budget import DailyBudgetTracker  # noqa: E402
from flavor_monk.llm.router import LLMRouter  # noqa: E402
from flavor_monk.main import app  # noqa: E402
from flavor_monk.recommendation.observability import store_monitor  # noqa: E402
from flavor_monk.services import recommendation_service  # noqa: E402

from flavor_monk.tests.utils import FakeProvider, FakeVectorStore  # noqa: E402


@pytest.fixture(autouse=True)
def _use_plaintext_passwords(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(security, "pwd_context", CryptContext(schemes=["plaintext"]))


@pytest.fixture(autouse=True)
def _reset_shared_state():
    recommendation_service.ranking_cache.clear()
    store_monitor.reset()
    yield
    recommendation_service.ranking_cache.clear()
    store_monitor.reset()


@pytest_asyncio.fixture()
async def session() -> AsyncSession:
    database_url = settings.test_database_url or settings.database_url
    url = make_url(database_url)
    schema_name: str | None = None
    engine = create_async_engine(database_url, future=True)
    if url.drivername.startswith("postgresql"):
        # Isolate each test run in its own schema for parallel-friendly cleanup.
        schema_name = f"test_{uuid.uuid4().hex}"
        engine = engine.execution_options(schema_translate_map={None: schema_name})
    async with engine.begin() as conn:
        if schema_name:
            await conn.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
        await conn.run_sync(Base.metadata.create_all)
    TestingSession = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with TestingSession() as session:
            yield session
    finally:
        async with engine.begin() as conn:
            if schema_name:
                await conn.exec_driver_sql(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE')
            else:
                await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture()
def vector_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def llm_router() -> LLMRouter:
    return LLMRouter(FakeProvider("local reply"), None, budget=DailyBudgetTracker(1.0))


@pytest_asyncio.fixture()
async def client(session: AsyncSession, vector_store: FakeVectorStore, llm_router: LLMRouter) -> AsyncClient:
    async def _get_test_db():
        yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_vector_store] = lambda: vector_store
    app.dependency_overrides[get_llm_router] = lambda: llm_router
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client
    for dependency in (get_db, get_vector_store, get_llm_router):
        app.dependency_overrides.pop(dependency, None)
