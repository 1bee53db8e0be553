"""Result values returned by the order status transition executor.

Every attempt ends in exactly one of these variants. They carry only the
context a caller needs to act on the result; mapping them to HTTP responses
is the route layer's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Union


@dataclass(frozen=True)
class OrderView:
    """The order fields exposed after a committed transition."""

    id: str
    restaurant_id: str
    status: str
    updated_at: datetime | None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "restaurant_id": self.restaurant_id,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class TransitionOk:
    code: ClassVar[str] = "OK"

    order: OrderView
    from_status: str
    audited: bool = True


@dataclass(frozen=True)
class InvalidOrderId:
    code: ClassVar[str] = "INVALID_ORDER_ID"

    order_id: str


@dataclass(frozen=True)
class InvalidStatus:
    code: ClassVar[str] = "INVALID_STATUS"

    requested: object


@dataclass(frozen=True)
class InvalidReason:
    code: ClassVar[str] = "INVALID_REASON"

    max_length: int


@dataclass(frozen=True)
class Forbidden:
    """No such order, or the principal may not touch it. Deliberately opaque."""

    code: ClassVar[str] = "FORBIDDEN"


@dataclass(frozen=True)
class InvalidTransition:
    code: ClassVar[str] = "INVALID_TRANSITION"

    from_status: str
    allowed: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Conflict:
    """The conditional write matched no row: another transition won."""

    code: ClassVar[str] = "CONFLICT_STATUS_CHANGED"

    current: str | None
    expected: str


@dataclass(frozen=True)
class WriteRejected:
    """The store refused the write (row-level security or similar)."""

    code: ClassVar[str] = "FORBIDDEN"


@dataclass(frozen=True)
class InternalError:
    code: ClassVar[str] = "INTERNAL_ERROR"

    error_id: str


TransitionOutcome = Union[
    TransitionOk,
    InvalidOrderId,
    InvalidStatus,
    InvalidReason,
    Forbidden,
    InvalidTransition,
    Conflict,
    WriteRejected,
    InternalError,
]
