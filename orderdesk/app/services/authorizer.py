"""Decide whether a staff member may touch an order.

A single read returns the order's tenant and current status joined to the
caller's membership of that tenant. Missing orders, orders of other
restaurants and insufficient roles all come back as ``None`` so callers
cannot probe for the existence of other tenants' orders.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from config import StaffRole, get_settings

from ..auth import Principal
from ..repos_sqlalchemy import TenantScope, role_at_least
from ..repos_sqlalchemy import orders_repo_sql
from ..repos_sqlalchemy.orders_repo_sql import OrderSnapshot


def is_permission_denied(exc: BaseException) -> bool:
    """Return ``True`` for store errors that mean "not allowed" (SQLSTATE 42501)."""

    orig = getattr(exc, "orig", exc)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == "42501"


async def authorize_transition(
    session: AsyncSession,
    order_id: str,
    principal: Principal,
    min_role: StaffRole | None = None,
) -> OrderSnapshot | None:
    """Return the order if ``principal`` may change its status, else ``None``."""

    await TenantScope.bind_user(session, principal.user_id)
    snapshot = await orders_repo_sql.load_for_user(session, order_id, principal.user_id)
    if snapshot is None:
        return None
    floor = min_role or get_settings().min_mutation_role
    if not role_at_least(snapshot.role, floor):
        return None
    return snapshot


async def authorize_read(
    session: AsyncSession, order_id: str, principal: Principal
) -> OrderSnapshot | None:
    """Return the order if ``principal`` holds any role on its restaurant."""

    return await authorize_transition(
        session, order_id, principal, min_role=StaffRole.VIEWER
    )
