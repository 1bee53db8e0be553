"""Service layer helpers for the API."""

from .audit_trail import TransitionEvent, list_events, record_transition
from .authorizer import authorize_read, authorize_transition
from .order_expiry import ExpirySummary, expire_stale_orders
from .order_transitions import apply_transition, transition_order

__all__ = [
    "TransitionEvent",
    "list_events",
    "record_transition",
    "authorize_read",
    "authorize_transition",
    "ExpirySummary",
    "expire_stale_orders",
    "apply_transition",
    "transition_order",
]
