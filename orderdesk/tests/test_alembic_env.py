import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from orderdesk.app.db import run_migrations


@pytest.mark.anyio
async def test_migrations_create_order_tables(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path}/migrated.db"
    await run_migrations(url)

    engine = create_async_engine(url)
    try:
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
            checks = await conn.run_sync(
                lambda c: inspect(c).get_check_constraints("orders")
            )
    finally:
        await engine.dispose()

    assert {
        "restaurants",
        "restaurant_staff",
        "orders",
        "order_status_events",
        "alembic_version",
    } <= set(tables)
    assert any(c["name"] == "ck_orders_status" for c in checks)
