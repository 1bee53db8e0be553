"""Order status transitions with optimistic concurrency control.

Two staff members, or a staff member and the expiry job, may try to move
the same order at the same time. No in-process lock can help across API
instances, so the guard lives in the store: the status is read once, the
requested edge is checked against ``domain.TRANSITIONS``, and the write is a
single ``UPDATE ... WHERE status = <status that was read>``. If that update
matches no row and the stored status moved, another request won; the caller
gets :class:`Conflict` with the status that is actually stored and must
decide again. Conflicts are never retried here. A zero-row update that
leaves the status untouched means row-level security filtered the write
out, which is reported as :class:`WriteRejected`.

Every attempt returns one :data:`TransitionOutcome` and is reported once
through :class:`TransitionEmitter`.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from ..auth import Principal
from ..domain import (
    Conflict,
    Forbidden,
    InternalError,
    InvalidOrderId,
    InvalidReason,
    InvalidStatus,
    InvalidTransition,
    OrderStatus,
    TransitionOk,
    TransitionOutcome,
    WriteRejected,
    allowed_next,
    can_transition,
    parse_status,
)
from ..obs import TransitionContext, TransitionEmitter
from ..repos_sqlalchemy import orders_repo_sql
from .audit_trail import TransitionEvent, record_transition, rollback_quietly
from .authorizer import authorize_transition, is_permission_denied

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I
)

default_emitter = TransitionEmitter()

ANONYMOUS_ACTOR = "anonymous"

Attempt = tuple[TransitionOutcome, BaseException | None]


def is_uuid(value: object) -> bool:
    """Return ``True`` for a canonical 8-4-4-4-12 hex UUID string."""
    return isinstance(value, str) and bool(UUID_RE.match(value))


def normalize_reason(reason: object, max_length: int) -> str | None:
    """Trim ``reason``; blank becomes ``None``.

    Raises ``ValueError`` for non-string or overlong reasons.
    """
    if reason is None:
        return None
    if not isinstance(reason, str):
        raise ValueError("reason must be a string")
    text = reason.strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValueError("reason too long")
    return text


def _internal(exc: BaseException) -> Attempt:
    return InternalError(error_id=str(uuid.uuid4())), exc


async def apply_transition(
    session: AsyncSession,
    *,
    order_id: str,
    restaurant_id: str,
    current: OrderStatus,
    target: OrderStatus,
    actor: str,
    reason: str | None,
    ctx: TransitionContext,
    emitter: TransitionEmitter,
    now: datetime | None = None,
) -> Attempt:
    """Check the edge, write it conditionally, then audit it.

    ``current`` is the status the caller observed inside the open
    transaction on ``session``. Shared by every channel that moves orders.
    """

    if not can_transition(current, target):
        await rollback_quietly(session)
        return InvalidTransition(
            from_status=current.value, allowed=tuple(allowed_next(current))
        ), None

    try:
        view = await orders_repo_sql.compare_and_set_status(
            session, order_id, current, target, now
        )
        if view is None:
            actual = await orders_repo_sql.read_status(session, order_id)
            await rollback_quietly(session)
            if actual == current.value:
                # row unchanged: the store filtered the update out
                return WriteRejected(), None
            return Conflict(current=actual, expected=current.value), None
        await session.commit()
    except Exception as exc:
        await rollback_quietly(session)
        if is_permission_denied(exc):
            return WriteRejected(), None
        return _internal(exc)

    audited = await record_transition(
        session,
        TransitionEvent(
            order_id=order_id,
            restaurant_id=restaurant_id,
            from_status=current.value,
            to_status=target.value,
            actor=actor,
            reason=reason,
        ),
        emitter,
        ctx,
    )
    return TransitionOk(order=view, from_status=current.value, audited=audited), None


async def _attempt(
    session: AsyncSession,
    order_id: object,
    requested: object,
    principal: Principal | None,
    reason: object,
    ctx: TransitionContext,
    emitter: TransitionEmitter,
) -> Attempt:
    if not is_uuid(order_id):
        return InvalidOrderId(order_id=str(order_id)), None
    oid = order_id.lower()

    target = parse_status(requested)
    if target is None:
        return InvalidStatus(requested=requested), None

    max_length = get_settings().reason_max_length
    try:
        note = normalize_reason(reason, max_length)
    except ValueError:
        return InvalidReason(max_length=max_length), None

    if principal is None:
        return Forbidden(), None

    try:
        snapshot = await authorize_transition(session, oid, principal)
    except Exception as exc:
        await rollback_quietly(session)
        if is_permission_denied(exc):
            return Forbidden(), None
        return _internal(exc)
    if snapshot is None:
        await rollback_quietly(session)
        return Forbidden(), None

    ctx.tenant = snapshot.restaurant_id
    ctx.from_status = snapshot.status
    current = parse_status(snapshot.status)
    if current is None:
        await rollback_quietly(session)
        return InvalidTransition(from_status=snapshot.status), None

    return await apply_transition(
        session,
        order_id=snapshot.id,
        restaurant_id=snapshot.restaurant_id,
        current=current,
        target=target,
        actor=principal.actor,
        reason=note,
        ctx=ctx,
        emitter=emitter,
    )


async def transition_order(
    session: AsyncSession,
    order_id: object,
    requested: object,
    principal: Principal | None,
    reason: object = None,
    *,
    emitter: TransitionEmitter | None = None,
) -> TransitionOutcome:
    """Move ``order_id`` to ``requested`` on behalf of ``principal``.

    A missing principal is treated like a principal without access.

    Returns exactly one outcome. Storage failures are converted to
    :class:`InternalError` (or :class:`WriteRejected` when the store refused
    the write); nothing is partially applied.
    """

    emitter = emitter or default_emitter
    ctx = TransitionContext(
        order_id=str(order_id),
        actor=principal.actor if principal else ANONYMOUS_ACTOR,
        to_status=requested if isinstance(requested, str) else None,
    )
    outcome, exc = await _attempt(
        session, order_id, requested, principal, reason, ctx, emitter
    )
    emitter.emit(outcome, ctx, exc)
    return outcome
