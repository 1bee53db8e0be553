import importlib.util
import json
import pathlib
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from orderdesk.app.domain import OrderStatus
from orderdesk.app.repos_sqlalchemy import events_repo_sql, orders_repo_sql
from orderdesk.app.services import ExpirySummary, expire_stale_orders
from orderdesk.app.services.order_expiry import SYSTEM_EXPIRY_ACTOR
from orderdesk.tests._seed_orders import RESTAURANT_B, minutes_ago

ROOT = pathlib.Path(__file__).resolve().parents[2]


@pytest.mark.anyio
async def test_expires_only_stale_pending_orders(seeded):
    stale = await seeded.order("pending", created_at=minutes_ago(90))
    stale_b = await seeded.order(
        "pending", restaurant_id=RESTAURANT_B, created_at=minutes_ago(45)
    )
    fresh = await seeded.order("pending", created_at=minutes_ago(5))
    paid = await seeded.order("paid", created_at=minutes_ago(120))
    before = REGISTRY.get_sample_value("orders_expired_total") or 0.0

    async with seeded.Session() as session:
        summary = await expire_stale_orders(session, timedelta(minutes=30))

    assert summary == ExpirySummary(scanned=2, expired=2, conflicts=0, failed=0)
    assert await seeded.status_of(stale) == "expired"
    assert await seeded.status_of(stale_b) == "expired"
    assert await seeded.status_of(fresh) == "pending"
    assert await seeded.status_of(paid) == "paid"
    assert REGISTRY.get_sample_value("orders_expired_total") == before + 2

    async with seeded.Session() as session:
        events = await events_repo_sql.list_for_order(session, stale)
    assert len(events) == 1
    assert events[0]["from_status"] == "pending"
    assert events[0]["to_status"] == "expired"
    assert events[0]["changed_by"] == SYSTEM_EXPIRY_ACTOR
    assert events[0]["reason"] == "payment window elapsed"


@pytest.mark.anyio
async def test_payment_during_sweep_wins(seeded, monkeypatch):
    order_id = await seeded.order("pending", created_at=minutes_ago(60))
    original = orders_repo_sql.list_stale_pending

    async def scan_then_pay(session, cutoff, limit=500):
        found = await original(session, cutoff, limit)
        async with seeded.Session() as other:
            await orders_repo_sql.compare_and_set_status(
                other, order_id, OrderStatus.PENDING, OrderStatus.PAID
            )
            await other.commit()
        return found

    monkeypatch.setattr(orders_repo_sql, "list_stale_pending", scan_then_pay)

    async with seeded.Session() as session:
        summary = await expire_stale_orders(session, timedelta(minutes=30))

    assert summary == ExpirySummary(scanned=1, expired=0, conflicts=1, failed=0)
    assert await seeded.status_of(order_id) == "paid"


@pytest.mark.anyio
async def test_limit_and_fixed_clock(seeded):
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    ids = [
        await seeded.order("pending", created_at=now - timedelta(hours=h))
        for h in (3, 2, 1)
    ]
    async with seeded.Session() as session:
        summary = await expire_stale_orders(
            session, timedelta(minutes=30), now=now, limit=2
        )
    assert summary.expired == 2
    # oldest first
    assert [await seeded.status_of(i) for i in ids] == ["expired", "expired", "pending"]


def _load_cli():
    spec = importlib.util.spec_from_file_location(
        "expire_pending_orders", ROOT / "scripts/expire_pending_orders.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_passes_window_and_reports(monkeypatch, capsys):
    cli = _load_cli()
    calls = []

    async def fake_sweep(minutes, limit=500):
        calls.append((minutes, limit))
        return ExpirySummary(scanned=3, expired=2, conflicts=1, failed=0)

    monkeypatch.setattr(cli, "sweep", fake_sweep)
    assert cli.main(["--minutes", "15", "--limit", "10"]) == 0
    assert calls == [(15, 10)]
    assert json.loads(capsys.readouterr().out) == {
        "scanned": 3,
        "expired": 2,
        "conflicts": 1,
        "failed": 0,
    }


def test_cli_exit_status_reflects_failures(monkeypatch, capsys):
    cli = _load_cli()

    async def fake_sweep(minutes, limit=500):
        return ExpirySummary(scanned=1, failed=1)

    monkeypatch.setattr(cli, "sweep", fake_sweep)
    assert cli.main([]) == 1


def test_cli_rejects_non_positive_window():
    cli = _load_cli()
    with pytest.raises(SystemExit):
        cli.main(["--minutes", "0"])
