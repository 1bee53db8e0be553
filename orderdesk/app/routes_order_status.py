"""Dashboard endpoints that move orders through their lifecycle.

The handlers only translate HTTP into a call to
``services.order_transitions.transition_order`` and map the returned
outcome to a status code and body. All decisions happen in the service.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import Principal, get_optional_principal
from .db import get_session
from .domain import (
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
)
from .services import list_events, transition_order
from .services.order_transitions import is_uuid
from .utils.responses import error_response

router = APIRouter(prefix="/api/orders", tags=["orders"])


class StatusChange(BaseModel):
    """Body of the status change request.

    Fields are left untyped: an unknown or missing status must surface as
    `INVALID_STATUS` from the executor, not as a schema error.
    """

    model_config = ConfigDict(extra="ignore")

    status: Any = None
    reason: Any = None


STATUS_CODES: dict[type, int] = {
    TransitionOk: 200,
    InvalidOrderId: 400,
    InvalidStatus: 400,
    InvalidReason: 400,
    Forbidden: 404,
    InvalidTransition: 409,
    Conflict: 409,
    WriteRejected: 403,
    InternalError: 500,
}


def outcome_response(outcome: TransitionOutcome) -> JSONResponse:
    """Map a transition outcome to its HTTP response."""

    status_code = STATUS_CODES[type(outcome)]
    if isinstance(outcome, TransitionOk):
        return JSONResponse({"order": outcome.order.as_dict()}, status_code=status_code)
    if isinstance(outcome, InvalidTransition):
        return error_response(
            status_code,
            outcome.code,
            **{"from": outcome.from_status, "allowed": list(outcome.allowed)},
        )
    if isinstance(outcome, Conflict):
        return error_response(status_code, outcome.code, current=outcome.current)
    if isinstance(outcome, InvalidReason):
        return error_response(status_code, outcome.code, max_length=outcome.max_length)
    return error_response(status_code, outcome.code)


async def _json_body(request: Request) -> dict:
    """Return the JSON object body, or ``{}`` when absent or malformed."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.patch("/{order_id}/status")
async def change_status(
    order_id: str,
    request: Request,
    principal: Principal | None = Depends(get_optional_principal),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Move an order to the status named in the body.

    Body: ``{"status": "<status>", "reason": "<optional text>"}``.
    """
    body = StatusChange.model_validate(await _json_body(request))
    outcome = await transition_order(
        session, order_id, body.status, principal, body.reason
    )
    return outcome_response(outcome)


@router.post("/{order_id}/mark-paid")
async def mark_paid(
    order_id: str,
    principal: Principal | None = Depends(get_optional_principal),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Shortcut for ``pending -> paid`` used by cash and counter payments."""
    outcome = await transition_order(
        session, order_id, OrderStatus.PAID.value, principal
    )
    return outcome_response(outcome)


@router.get("/{order_id}/events")
async def order_events(
    order_id: str,
    principal: Principal | None = Depends(get_optional_principal),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Return the status history of an order, oldest first."""
    if not is_uuid(order_id):
        return error_response(400, InvalidOrderId.code)
    events = await list_events(session, order_id.lower(), principal)
    if events is None:
        return error_response(404, Forbidden.code)
    return JSONResponse({"events": events})
