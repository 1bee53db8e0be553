"""Engine and session management for the orders database.

The DSN comes from ``Settings.database_url``; production uses
``postgresql+asyncpg://...`` while development and tests run on
``sqlite+aiosqlite``. Use :func:`get_session` as a FastAPI dependency and
:func:`session_scope` in scripts.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import get_settings

from ..obs import add_query_logger

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "alembic"


def get_engine() -> AsyncEngine:
    """Return a singleton async engine for the configured database."""
    global _engine, _sessionmaker
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, pool_pre_ping=True)
        add_query_logger(_engine, "orders", settings.db_slow_query_ms)
        _sessionmaker = async_sessionmaker(
            _engine, expire_on_commit=False, class_=AsyncSession
        )
    return _engine


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and ensure it is closed afterwards."""
    if _sessionmaker is None:
        get_engine()
    assert _sessionmaker is not None  # for type checkers
    session = _sessionmaker()
    try:
        yield session
    finally:
        await session.close()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with session_scope() as session:
        yield session


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


async def run_migrations(database_url: str | None = None) -> None:
    """Upgrade the database at ``database_url`` to the latest revision."""

    url = database_url or get_settings().database_url
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", url)
    try:
        await asyncio.to_thread(command.upgrade, cfg, "head")
    except Exception as exc:
        logger.error("Failed to run migrations: %s", exc)
        raise


__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "dispose_engine",
    "run_migrations",
]
