"""Async engine, session factory and the ``get_db`` dependency.

Schema changes go through Alembic (``migrations/``); nothing here creates
tables. Tests point ``get_db`` at an in-memory SQLite engine with
``set_test_session_maker``.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fintrack.config import settings
from fintrack.logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


def engine_options(database_url: str) -> dict[str, Any]:
    """Pool sizing for server databases; SQLite gets the driver defaults."""
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        # Reconcile batches hold a connection for the whole batch
        options.update(pool_size=10, max_overflow=20, pool_recycle=3600)
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_test_session_maker: async_sessionmaker[AsyncSession] | None = None


def set_test_session_maker(
    maker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    """Swap the session factory used by ``get_db``; returns the previous override."""
    global _test_session_maker
    previous, _test_session_maker = _test_session_maker, maker
    return previous


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # Routers commit explicitly; anything left uncommitted is rolled back on close
    async with (_test_session_maker or async_session_maker)() as session:
        yield session


async def init_db() -> None:
    """Log which database the process is bound to; migrations own the schema."""
    url = make_url(settings.database_url)
    logger.info(
        "Database configured",
        backend=url.get_backend_name(),
        url=url.render_as_string(hide_password=True),
    )
