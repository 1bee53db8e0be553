# main.py

"""FastAPI application serving order status transitions."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from .config.cors import configure_cors
from .config.validate import validate_on_boot
from .db import dispose_engine
from .middlewares import LoggingMiddleware, PrometheusMiddleware, RequestIdMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .routes_dashboard_orders import router as dashboard_orders_router
from .routes_metrics import router as metrics_router
from .routes_order_status import router as order_status_router
from .utils.responses import ApiError, api_error_handler, error_response

settings = get_settings()
validate_on_boot(settings)
configure_logging(settings.log_level.upper())
logger = logging.getLogger("api")
init_sentry(settings.error_dsn, env=settings.environment)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("orderdesk starting", extra={"event": "startup"})
    yield
    await dispose_engine()


app = FastAPI(
    title="Orderdesk API",
    version="1.0.0",
    servers=[{"url": "/"}],
    openapi_url="/openapi.json",
    lifespan=lifespan,
)
# outermost last: request ids must exist before the access log line is written
app.add_middleware(PrometheusMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)
configure_cors(app, settings)

app.add_exception_handler(ApiError, api_error_handler)


def _http_code(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).name
    except ValueError:
        return "HTTP_ERROR"


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        "http_error",
        extra={"status": exc.status_code, "route": request.url.path},
    )
    return error_response(exc.status_code, _http_code(exc.status_code))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(
        "validation_error",
        extra={"status": 400, "route": request.url.path},
    )
    return error_response(400, "BAD_REQUEST")


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.exception(
        "unhandled_error",
        extra={"status": 500, "route": request.url.path, "error_id": error_id},
    )
    capture_exception(exc, error_id=error_id)
    return JSONResponse({"code": "INTERNAL_ERROR"}, status_code=500)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(order_status_router)
app.include_router(dashboard_orders_router)
app.include_router(metrics_router)
