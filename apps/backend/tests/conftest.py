"""Test fixtures and configuration."""

import asyncio
import logging
import os
import sys
from collections.abc import Callable
from uuid import UUID, uuid4

# Point settings at SQLite before any fintrack module builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import fintrack.models  # noqa: F401
from fintrack import database
from fintrack import logger as logger_module
from fintrack.database import Base
from fintrack.services import matching
from fintrack.services.errors import OracleUnavailable


@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Use the app's processor chain (masking included) with a console renderer and no logger caching."""
    processors = logger_module._build_processors()
    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=structlog.dev.ConsoleRenderer(), foreign_pre_chain=processors)
    )
    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def reset_match_config():
    """Drop the cached match config so env overrides never leak between tests."""
    matching._config_cache = None
    yield
    matching._config_cache = None


# --- Database ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database; commits and rollbacks are real.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Database session for service-level tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


# --- Oracle ---


class StubOracle:
    """Scripted similarity oracle that records every question it is asked."""

    def __init__(
        self,
        answer: bool = True,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.answer = answer
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def is_duplicate(self, description_a: str, description_b: str) -> bool:
        self.calls.append((description_a, description_b))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def stub_oracle() -> Callable[..., StubOracle]:
    """Factory for scripted oracles: stub_oracle(True), stub_oracle(error=...)."""
    return StubOracle


@pytest.fixture
def unavailable_oracle() -> StubOracle:
    return StubOracle(error=OracleUnavailable("service down"))


# --- HTTP ---


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, user_id):
    """Authenticated async test client bound to the per-test database."""
    from fintrack.main import app
    from fintrack.security import create_access_token
    from fintrack.services.oracle import get_similarity_oracle

    previous = database.set_test_session_maker(session_maker)
    app.dependency_overrides[get_similarity_oracle] = lambda: None

    token = create_access_token(data={"sub": str(user_id)})
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"Authorization": f"Bearer {token}"},
        ) as client_instance:
            yield client_instance
    finally:
        app.dependency_overrides.pop(get_similarity_oracle, None)
        database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def public_client(session_maker):
    """Async test client without auth headers."""
    from fintrack.main import app

    previous = database.set_test_session_maker(session_maker)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client_instance:
            yield client_instance
    finally:
        database.set_test_session_maker(previous)
