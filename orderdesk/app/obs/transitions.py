"""Structured reporting for order status transitions.

One record is written per attempt, whatever branch it ended in, plus a
separate record whenever the audit trail could not be written. Records go
to the ``orderdesk.transitions`` logger, Prometheus and, for failures that
carry an exception, the error sink. Nothing here raises into the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..domain import (
    Conflict,
    Forbidden,
    InternalError,
    InvalidOrderId,
    InvalidReason,
    InvalidStatus,
    InvalidTransition,
    TransitionOk,
    TransitionOutcome,
    WriteRejected,
)
from ..routes_metrics import (
    order_audit_failures_total,
    order_transition_seconds,
    order_transitions_total,
)
from .errors import capture_exception

logger = logging.getLogger("orderdesk.transitions")

OUTCOME_LABELS: dict[type, str] = {
    TransitionOk: "ok",
    InvalidOrderId: "invalid_order_id",
    InvalidStatus: "invalid_status",
    InvalidReason: "invalid_reason",
    Forbidden: "forbidden",
    InvalidTransition: "invalid_transition",
    Conflict: "conflict",
    WriteRejected: "write_rejected",
    InternalError: "internal_error",
}

_LEVELS: dict[str, int] = {
    "forbidden": logging.WARNING,
    "conflict": logging.WARNING,
    "write_rejected": logging.WARNING,
    "internal_error": logging.ERROR,
}


@dataclass
class TransitionContext:
    """What is known about an attempt; filled in as the executor progresses."""

    order_id: str
    actor: str
    to_status: str | None
    tenant: str | None = None
    from_status: str | None = None
    started: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


def outcome_label(outcome: TransitionOutcome) -> str:
    return OUTCOME_LABELS.get(type(outcome), "unknown")


class TransitionEmitter:
    """Write-only sink for transition decisions."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def emit(
        self,
        outcome: TransitionOutcome,
        ctx: TransitionContext,
        exc: BaseException | None = None,
    ) -> None:
        label = outcome_label(outcome)
        latency_ms = ctx.elapsed_ms()
        extra = {
            "event": "order_transition",
            "outcome": label,
            "order_id": ctx.order_id,
            "tenant": ctx.tenant,
            "actor": ctx.actor,
            "from_status": ctx.from_status,
            "to_status": ctx.to_status,
            "latency_ms": latency_ms,
        }
        if isinstance(outcome, Conflict):
            extra["current_status"] = outcome.current
        if isinstance(outcome, InternalError):
            extra["error_id"] = outcome.error_id
        try:
            order_transitions_total.labels(outcome=label).inc()
            order_transition_seconds.labels(outcome=label).observe(latency_ms / 1000)
            self.log.log(
                _LEVELS.get(label, logging.INFO),
                "order %s transition %s -> %s: %s",
                ctx.order_id,
                ctx.from_status,
                ctx.to_status,
                label,
                extra=extra,
            )
            if exc is not None:
                capture_exception(exc, order_id=ctx.order_id, outcome=label)
        except Exception:  # pragma: no cover - reporting must not break requests
            logging.getLogger("obs").exception("failed to emit transition record")

    def audit_failed(self, ctx: TransitionContext, exc: BaseException) -> None:
        """Report a committed transition whose audit event was not stored."""
        try:
            order_audit_failures_total.inc()
            self.log.error(
                "audit event not written for order %s (%s -> %s)",
                ctx.order_id,
                ctx.from_status,
                ctx.to_status,
                extra={
                    "event": "audit_write_failed",
                    "order_id": ctx.order_id,
                    "tenant": ctx.tenant,
                    "actor": ctx.actor,
                    "from_status": ctx.from_status,
                    "to_status": ctx.to_status,
                },
            )
            capture_exception(exc, order_id=ctx.order_id, outcome="audit_failed")
        except Exception:  # pragma: no cover - reporting must not break requests
            logging.getLogger("obs").exception("failed to emit audit failure")
