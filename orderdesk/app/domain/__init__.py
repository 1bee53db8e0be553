"""Domain models and helpers."""

from .order_status import (
    TRANSITIONS,
    OrderStatus,
    allowed_next,
    can_transition,
    is_terminal,
    parse_status,
)
from .outcomes import (
    Conflict,
    Forbidden,
    InternalError,
    InvalidOrderId,
    InvalidReason,
    InvalidStatus,
    InvalidTransition,
    OrderView,
    TransitionOk,
    TransitionOutcome,
    WriteRejected,
)

__all__ = [
    "OrderStatus",
    "TRANSITIONS",
    "allowed_next",
    "can_transition",
    "is_terminal",
    "parse_status",
    "Conflict",
    "Forbidden",
    "InternalError",
    "InvalidOrderId",
    "InvalidReason",
    "InvalidStatus",
    "InvalidTransition",
    "OrderView",
    "TransitionOk",
    "TransitionOutcome",
    "WriteRejected",
]
