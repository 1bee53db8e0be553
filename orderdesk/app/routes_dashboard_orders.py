"""Order list for the merchant dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import StaffRole

from .auth import Principal, get_current_principal
from .db import get_session
from .domain import parse_status
from .repos_sqlalchemy import TenantScope, orders_repo_sql, role_at_least
from .services.order_transitions import is_uuid
from .utils.responses import error_response

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/orders")
async def list_orders(
    restaurant_id: str = Query(...),
    limit: int = Query(20),
    cursor: str | None = Query(None),
    status: str | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Return a page of the restaurant's orders, newest first."""

    if not is_uuid(restaurant_id) or (cursor and not is_uuid(cursor)):
        return error_response(400, "BAD_REQUEST")
    if not 1 <= limit <= 100:
        return error_response(400, "BAD_REQUEST")
    status_filter = None
    if status:
        status_filter = parse_status(status)
        if status_filter is None:
            return error_response(400, "INVALID_STATUS")

    await TenantScope.bind_user(session, principal.user_id)
    role = await orders_repo_sql.staff_role(session, restaurant_id, principal.user_id)
    if not role_at_least(role, StaffRole.VIEWER):
        return error_response(404, "FORBIDDEN")

    orders, next_cursor = await orders_repo_sql.list_orders(
        session, restaurant_id, limit=limit, cursor=cursor, status=status_filter
    )
    return JSONResponse(
        {"orders": [o.as_dict() for o in orders], "next_cursor": next_cursor}
    )
