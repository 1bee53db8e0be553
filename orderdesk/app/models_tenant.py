"""Tenant-scoped database models.

Every row here belongs to exactly one restaurant. These models are kept
isolated from any application wiring so that they can be used in tests or
migrations independently."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base

from .domain import OrderStatus

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Restaurant(Base):
    """A tenant."""

    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RestaurantStaff(Base):
    """Membership of a user in a restaurant with a role."""

    __tablename__ = "restaurant_staff"
    __table_args__ = (UniqueConstraint("restaurant_id", "user_id"),)

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    """A customer order.

    Only ``status`` and ``updated_at`` are mutated after creation, and only
    through the conditional write in ``repos_sqlalchemy.orders_repo_sql``.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_restaurant_created", "restaurant_id", "created_at"),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s.value}'" for s in OrderStatus) + ")",
            name="ck_orders_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    order_code = Column(String, nullable=True)
    total_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    customer = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class OrderStatusEvent(Base):
    """Append-only record of one committed status change."""

    __tablename__ = "order_status_events"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    restaurant_id = Column(String(36), nullable=False, index=True)
    from_status = Column(String, nullable=False)
    to_status = Column(String, nullable=False)
    reason = Column(Text, nullable=True)
    changed_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


__all__ = ["Base", "Restaurant", "RestaurantStaff", "Order", "OrderStatusEvent"]
