"""SQLAlchemy-backed repository helpers for orders.

These helpers perform database reads and writes only; they never commit.
Transaction boundaries belong to the service layer. The one write that
changes an order's status is :func:`compare_and_set_status`, a single
guarded ``UPDATE`` whose predicate pins the expected prior status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import OrderStatus, OrderView
from ..models_tenant import Order, RestaurantStaff


@dataclass(frozen=True)
class OrderSnapshot:
    """An order as seen by a specific staff member."""

    id: str
    restaurant_id: str
    status: str
    role: str


@dataclass(frozen=True)
class OrderSummary:
    """Lightweight representation of an order used by ``list_orders``."""

    id: str
    order_code: str | None
    status: str
    total_cents: int
    currency: str
    created_at: datetime
    updated_at: datetime

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "order_code": self.order_code,
            "status": self.status,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_order(
    session: AsyncSession,
    restaurant_id: str,
    *,
    order_code: str | None = None,
    total_cents: int = 0,
    currency: str = "USD",
    customer: dict | None = None,
    created_at: datetime | None = None,
) -> str:
    """Insert a new ``pending`` order for ``restaurant_id`` and return its id."""

    now = created_at or _utcnow()
    order = Order(
        restaurant_id=restaurant_id,
        status=OrderStatus.PENDING.value,
        order_code=order_code,
        total_cents=total_cents,
        currency=currency,
        customer=customer,
        created_at=now,
        updated_at=now,
    )
    session.add(order)
    await session.flush()
    return order.id


async def load_for_user(
    session: AsyncSession, order_id: str, user_id: str
) -> OrderSnapshot | None:
    """Return ``order_id`` if ``user_id`` is staff of its restaurant.

    Orders of restaurants the user does not belong to are indistinguishable
    from orders that do not exist: both return ``None``.
    """

    result = await session.execute(
        select(Order.id, Order.restaurant_id, Order.status, RestaurantStaff.role)
        .join(
            RestaurantStaff,
            and_(
                RestaurantStaff.restaurant_id == Order.restaurant_id,
                RestaurantStaff.user_id == user_id,
            ),
        )
        .where(Order.id == order_id)
    )
    row = result.first()
    if row is None:
        return None
    return OrderSnapshot(
        id=row.id, restaurant_id=row.restaurant_id, status=row.status, role=row.role
    )


async def read_status(session: AsyncSession, order_id: str) -> str | None:
    """Return the stored status of ``order_id`` without any caching."""

    result = await session.execute(select(Order.status).where(Order.id == order_id))
    return result.scalar_one_or_none()


async def compare_and_set_status(
    session: AsyncSession,
    order_id: str,
    expected: OrderStatus,
    new: OrderStatus,
    now: datetime | None = None,
) -> OrderView | None:
    """Move ``order_id`` from ``expected`` to ``new`` in one statement.

    Returns the updated order, or ``None`` when no row matched because the
    stored status is no longer ``expected``.
    """

    stmt = (
        update(Order)
        .where(Order.id == order_id, Order.status == expected.value)
        .values(status=new.value, updated_at=now or _utcnow())
        .execution_options(synchronize_session=False)
    )
    bind = session.bind
    if bind is not None and bind.dialect.update_returning:
        result = await session.execute(
            stmt.returning(
                Order.id, Order.restaurant_id, Order.status, Order.updated_at
            )
        )
        row = result.first()
    else:  # pragma: no cover - every supported dialect has RETURNING
        result = await session.execute(stmt)
        if result.rowcount != 1:
            return None
        row = (
            await session.execute(
                select(
                    Order.id, Order.restaurant_id, Order.status, Order.updated_at
                ).where(Order.id == order_id)
            )
        ).first()
    if row is None:
        return None
    return OrderView(
        id=row.id,
        restaurant_id=row.restaurant_id,
        status=row.status,
        updated_at=row.updated_at,
    )


async def staff_role(
    session: AsyncSession, restaurant_id: str, user_id: str
) -> str | None:
    """Return ``user_id``'s role on ``restaurant_id`` or ``None``."""

    result = await session.execute(
        select(RestaurantStaff.role).where(
            RestaurantStaff.restaurant_id == restaurant_id,
            RestaurantStaff.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_orders(
    session: AsyncSession,
    restaurant_id: str,
    *,
    limit: int = 20,
    cursor: str | None = None,
    status: OrderStatus | None = None,
) -> tuple[list[OrderSummary], str | None]:
    """Return a page of orders for ``restaurant_id``, newest first.

    ``cursor`` is the id of the last order of the previous page. The second
    element of the result is the cursor for the next page, or ``None`` when
    this page is the last.
    """

    query = select(Order).where(Order.restaurant_id == restaurant_id)
    if status is not None:
        query = query.where(Order.status == status.value)
    if cursor:
        anchor = (
            await session.execute(
                select(Order.created_at, Order.id).where(
                    Order.id == cursor, Order.restaurant_id == restaurant_id
                )
            )
        ).first()
        if anchor is not None:
            query = query.where(
                or_(
                    Order.created_at < anchor.created_at,
                    and_(Order.created_at == anchor.created_at, Order.id < anchor.id),
                )
            )
    query = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit + 1)
    rows = list((await session.execute(query)).scalars())

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = rows[-1].id
    return (
        [
            OrderSummary(
                id=o.id,
                order_code=o.order_code,
                status=o.status,
                total_cents=o.total_cents,
                currency=o.currency,
                created_at=o.created_at,
                updated_at=o.updated_at,
            )
            for o in rows
        ],
        next_cursor,
    )


async def list_stale_pending(
    session: AsyncSession, cutoff: datetime, limit: int = 500
) -> list[tuple[str, str]]:
    """Return ``(id, restaurant_id)`` of pending orders created before ``cutoff``."""

    result = await session.execute(
        select(Order.id, Order.restaurant_id)
        .where(Order.status == OrderStatus.PENDING.value, Order.created_at < cutoff)
        .order_by(Order.created_at)
        .limit(limit)
    )
    return [(row.id, row.restaurant_id) for row in result]
