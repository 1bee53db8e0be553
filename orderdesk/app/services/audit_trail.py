"""Audit trail of committed order status changes.

Events are written after the status change has committed, in their own
transaction. A failed insert is reported but never undoes or fails the
transition: the order row is the source of truth.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import Principal
from ..obs import TransitionContext, TransitionEmitter
from ..repos_sqlalchemy import TenantScope, events_repo_sql
from .authorizer import authorize_read, is_permission_denied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    order_id: str
    restaurant_id: str
    from_status: str
    to_status: str
    actor: str
    reason: str | None = None


async def rollback_quietly(session: AsyncSession) -> None:
    """Roll back after a failure without masking the original error."""
    try:
        await session.rollback()
    except Exception:
        logger.warning("rollback failed", exc_info=True)


async def record_transition(
    session: AsyncSession,
    event: TransitionEvent,
    emitter: TransitionEmitter,
    ctx: TransitionContext,
) -> bool:
    """Persist ``event``; return ``False`` (and report) if that fails."""

    try:
        await TenantScope.bind_user(session, event.actor)
        await events_repo_sql.insert_event(
            session,
            order_id=event.order_id,
            restaurant_id=event.restaurant_id,
            from_status=event.from_status,
            to_status=event.to_status,
            changed_by=event.actor,
            reason=event.reason,
        )
        await session.commit()
    except Exception as exc:
        await rollback_quietly(session)
        emitter.audit_failed(ctx, exc)
        return False
    return True


async def list_events(
    session: AsyncSession, order_id: str, principal: Principal | None
) -> list[dict] | None:
    """Return the timeline of ``order_id`` or ``None`` if it is not visible."""

    if principal is None:
        return None
    try:
        snapshot = await authorize_read(session, order_id, principal)
    except Exception as exc:
        await rollback_quietly(session)
        if is_permission_denied(exc):
            return None
        raise
    if snapshot is None:
        return None
    return await events_repo_sql.list_for_order(session, order_id)
