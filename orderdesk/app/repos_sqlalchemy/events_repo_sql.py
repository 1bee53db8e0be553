"""Append-only persistence for order status events."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models_tenant import OrderStatusEvent


async def insert_event(
    session: AsyncSession,
    *,
    order_id: str,
    restaurant_id: str,
    from_status: str,
    to_status: str,
    changed_by: str,
    reason: str | None = None,
) -> None:
    """Stage one event row; the caller commits."""

    session.add(
        OrderStatusEvent(
            order_id=order_id,
            restaurant_id=restaurant_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            changed_by=changed_by,
            created_at=datetime.now(timezone.utc),
        )
    )
    await session.flush()


async def list_for_order(session: AsyncSession, order_id: str) -> list[dict]:
    """Return the events of ``order_id`` oldest first."""

    result = await session.execute(
        select(OrderStatusEvent)
        .where(OrderStatusEvent.order_id == order_id)
        .order_by(OrderStatusEvent.created_at, OrderStatusEvent.id)
    )
    return [
        {
            "from_status": ev.from_status,
            "to_status": ev.to_status,
            "reason": ev.reason,
            "changed_by": ev.changed_by,
            "created_at": ev.created_at.isoformat() if ev.created_at else None,
        }
        for ev in result.scalars()
    ]
