"""Request id propagation."""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variable used by the log filter and the transition emitter
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def _incoming_id(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID")
    if supplied and _SAFE_ID.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensure every request carries a request id.

    A client supplied ``X-Request-ID`` is reused when it looks like an id;
    anything else is replaced so it cannot pollute the logs.
    """

    async def dispatch(self, request: Request, call_next):
        req_id = _incoming_id(request)
        token = request_id_ctx.set(req_id)
        request.state.request_id = req_id
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = req_id
        return response
