"""Order status enumeration and allowed transitions.

``TRANSITIONS`` is the only place legal status changes are defined. The HTTP
routes, the expiry job and anything else that moves an order consult it
through :func:`can_transition` / :func:`allowed_next`.
"""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
    ),
    OrderStatus.PAID: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.CANCELLED),
    OrderStatus.READY: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
    OrderStatus.EXPIRED: (),
}


def parse_status(value: object) -> OrderStatus | None:
    """Return the :class:`OrderStatus` named by ``value`` or ``None``.

    Only exact lowercase values are accepted; anything else is unknown.
    """

    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, ())


def allowed_next(src: OrderStatus) -> list[str]:
    """Return the statuses reachable from ``src`` as plain strings."""

    return [status.value for status in TRANSITIONS.get(src, ())]


def is_terminal(status: OrderStatus) -> bool:
    """Return ``True`` when ``status`` has no outgoing transitions."""

    return not TRANSITIONS.get(status)
