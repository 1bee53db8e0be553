import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..obs import capture_exception
from ..utils.responses import error_body

logger = logging.getLogger("api")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured record per request and contain unhandled errors.

    Request bodies are never logged: reasons and customer payloads may carry
    personal data.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_id = str(uuid.uuid4())
            capture_exception(exc, error_id=error_id)
            response = JSONResponse(error_body("INTERNAL_ERROR"), status_code=500)
        dur_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        route = request.scope.get("route")
        extra = {
            "route": route.path if route else request.url.path,
            "method": request.method,
            "status": status,
            "latency_ms": dur_ms,
        }
        if error_id:
            extra["error_id"] = error_id
        log_fn = logger.error if status >= 500 else logger.info
        log_fn("%s %s -> %d", request.method, request.url.path, status, extra=extra)
        return response
