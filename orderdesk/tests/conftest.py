"""Test configuration for the order status tests.

Every test gets its own SQLite file so separate sessions behave like separate
API instances sharing one database.
"""

import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from orderdesk.app.models_tenant import Base  # noqa: E402
from orderdesk.tests._seed_orders import Seeded, seed_restaurants  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def seeded(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/orders.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await seed_restaurants(Session)
    yield Seeded(Session=Session)
    await engine.dispose()
