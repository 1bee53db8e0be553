"""Expire pending orders that were never paid.

Runs outside any request as the ``system:expiry`` actor. Each candidate is
moved with the same table check and conditional write the API uses, so an
order paid between the scan and the write is reported as a conflict and left
alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import Conflict, OrderStatus, TransitionOk
from ..obs import TransitionContext, TransitionEmitter
from ..repos_sqlalchemy import orders_repo_sql
from ..routes_metrics import orders_expired_total
from .audit_trail import rollback_quietly
from .order_transitions import apply_transition, default_emitter

logger = logging.getLogger(__name__)

SYSTEM_EXPIRY_ACTOR = "system:expiry"


@dataclass
class ExpirySummary:
    scanned: int = 0
    expired: int = 0
    conflicts: int = 0
    failed: int = 0


async def expire_stale_orders(
    session: AsyncSession,
    older_than: timedelta,
    now: datetime | None = None,
    limit: int = 500,
    emitter: TransitionEmitter | None = None,
) -> ExpirySummary:
    """Move ``pending`` orders created before ``now - older_than`` to ``expired``."""

    emitter = emitter or default_emitter
    now = now or datetime.now(timezone.utc)
    candidates = await orders_repo_sql.list_stale_pending(
        session, now - older_than, limit
    )
    await rollback_quietly(session)

    summary = ExpirySummary(scanned=len(candidates))
    for order_id, restaurant_id in candidates:
        ctx = TransitionContext(
            order_id=order_id,
            actor=SYSTEM_EXPIRY_ACTOR,
            to_status=OrderStatus.EXPIRED.value,
            tenant=restaurant_id,
            from_status=OrderStatus.PENDING.value,
        )
        outcome, exc = await apply_transition(
            session,
            order_id=order_id,
            restaurant_id=restaurant_id,
            current=OrderStatus.PENDING,
            target=OrderStatus.EXPIRED,
            actor=SYSTEM_EXPIRY_ACTOR,
            reason="payment window elapsed",
            ctx=ctx,
            emitter=emitter,
            now=now,
        )
        emitter.emit(outcome, ctx, exc)
        if isinstance(outcome, TransitionOk):
            summary.expired += 1
            orders_expired_total.inc()
        elif isinstance(outcome, Conflict):
            summary.conflicts += 1
        else:
            summary.failed += 1

    logger.info(
        "expiry sweep scanned=%d expired=%d conflicts=%d failed=%d",
        summary.scanned,
        summary.expired,
        summary.conflicts,
        summary.failed,
    )
    return summary
