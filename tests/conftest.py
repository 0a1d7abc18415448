"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.actions.base import ActionEnv
from backend.app.api.deps import get_identity, get_repositories
from backend.app.cache import MemoCache
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryRateLimiter, InMemoryStore
from backend.app.db.models import Base
from backend.app.identity import StaticIdentityProvider
from backend.app.main import create_app
from backend.app.ratelimit import RateLimiters
from tests.support import FIXED_NOW, School


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for PostgreSQL integration tests."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def school(store: InMemoryStore) -> School:
    tenant_id = store.add_tenant("demo")
    teacher_id = store.add_profile("Tina Teacher")
    student_id = store.add_profile("Sam Student")
    parent_id = store.add_profile("Pat Parent")
    admin_id = store.add_profile("Ada Admin")
    for user_id, role in (
        (teacher_id, "teacher"),
        (student_id, "student"),
        (parent_id, "parent"),
        (admin_id, "admin"),
    ):
        store.add_membership(user_id, tenant_id, role)

    course = store.add_course(tenant_id, teacher_id, "Algebra I")
    store.enroll(course.course_id, student_id)
    store.link_parent(parent_id, student_id)

    return School(
        tenant_id=tenant_id,
        teacher_id=teacher_id,
        student_id=student_id,
        parent_id=parent_id,
        admin_id=admin_id,
        course_id=course.course_id,
    )


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider()


@pytest.fixture
def limiters() -> RateLimiters:
    return RateLimiters(
        auth=InMemoryRateLimiter(5),
        api=InMemoryRateLimiter(30),
        general=InMemoryRateLimiter(60),
        report=InMemoryRateLimiter(5),
    )


@pytest.fixture
def make_env(
    store: InMemoryStore,
    identity: StaticIdentityProvider,
    limiters: RateLimiters,
) -> Callable[..., ActionEnv]:
    """Build an ActionEnv over the in-memory store with a fixed clock."""
    cache = MemoCache()

    def _make(ctx: RequestContext | None = None, **overrides: object) -> ActionEnv:
        env = ActionEnv(
            repos=store.repositories(),
            identity=identity,
            cache=cache,
            limiters=limiters,
            ctx=ctx,
            client_ip="203.0.113.7",
            tenant_slug="demo",
            clock=lambda: FIXED_NOW,
        )
        for name, value in overrides.items():
            setattr(env, name, value)
        return env

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        database_public_key="test-public-key",
        identity_url="http://identity.test",
        redis_url=None,
        site_url="http://lms.example.org",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def app(settings: Settings, store: InMemoryStore, identity: StaticIdentityProvider) -> FastAPI:
    """Application wired to the in-memory store and static identity provider."""
    application = create_app(settings)
    application.dependency_overrides[get_repositories] = store.repositories
    application.dependency_overrides[get_identity] = lambda: identity
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, base_url="http://localhost")
